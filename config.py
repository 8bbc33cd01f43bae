"""
Configuration settings for the chat context pipeline.
"""
import os
from typing import Dict, Any
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

# Load environment variables
load_dotenv()

# LLM configuration
LLM_CONFIG = {
    "model": os.environ.get("LLM_MODEL", "gemini-2.0-flash"),
    "classifier_model": os.environ.get("LLM_CLASSIFIER_MODEL", "gemini-2.0-flash-lite"),
    "temperature": float(os.environ.get("LLM_TEMPERATURE", "0.1")),
    "api_key": os.environ.get("LLM_API_KEY", ""),
    "max_retries": int(os.environ.get("LLM_MAX_RETRIES", "2")),
}

# Application configuration
APP_CONFIG = {
    "debug": os.environ.get("DEBUG", "False").lower() == "true",
    "log_level": os.environ.get("LOG_LEVEL", "INFO"),
    "agent_role": os.environ.get(
        "AGENT_ROLE",
        "Du bist ein hilfreicher Assistent für politische Kommunikation. "
        "Antworte präzise, sachlich und auf Deutsch.",
    ),
}

# Below this heuristic confidence the language model is asked to classify
HEURISTIC_CONFIDENCE_THRESHOLD = 0.85

# Feature flags
FEATURES = {
    "research_cleaning": os.environ.get("USE_RESEARCH_CLEANING", "True").lower() == "true",
}


class PipelineSettings(BaseModel):
    """
    Immutable pipeline configuration.

    Built once at process start and handed to every component; nothing
    mutates it afterwards.
    """
    model_config = ConfigDict(frozen=True)

    # Classification
    heuristic_confidence_threshold: float = Field(default=HEURISTIC_CONFIDENCE_THRESHOLD, ge=0.0, le=1.0)
    fuzzy_threshold: float = Field(default=0.75, ge=0.0, le=1.0)
    fuzzy_min_word_length: int = Field(default=4, ge=1)
    short_message_length: int = Field(default=10, ge=0)

    # Research brief
    brief_turn_window: int = Field(default=5, ge=1)

    # Retrieval
    retrieval_limit: int = Field(default=10, ge=1)
    max_budget_results: int = Field(default=8, ge=1)
    max_citations: int = Field(default=8, ge=1)
    citation_snippet_length: int = Field(default=200, ge=1)

    # Context budget
    base_budget: int = Field(default=4000, ge=1)
    large_budget: int = Field(default=6000, ge=1)
    long_content_threshold: int = Field(default=500, ge=1)
    min_result_quota: int = Field(default=200, ge=1)
    head_share: float = Field(default=0.6, gt=0.0, lt=1.0)

    # Attachments
    attachment_document_budget: int = Field(default=8000, ge=1)
    attachment_total_budget: int = Field(default=20000, ge=1)

    # Summarization
    single_pass_limit: int = Field(default=4000, ge=1)
    extended_single_pass_limit: int = Field(default=12000, ge=1)
    segment_size: int = Field(default=6000, ge=1)
    segment_overlap: int = Field(default=200, ge=0)
    conversation_summary_turns: int = Field(default=10, ge=1)

    # Response assembly
    research_synthesis_limit: int = Field(default=2000, ge=1)
    supports_research_cleaning: bool = True
    agent_role: str = ""

    # Models
    model: str = "gemini-2.0-flash"
    classifier_model: str = "gemini-2.0-flash-lite"


def load_settings() -> PipelineSettings:
    """Build the pipeline settings from the loaded environment."""
    return PipelineSettings(
        heuristic_confidence_threshold=float(os.environ.get("HEURISTIC_CONFIDENCE_THRESHOLD", str(HEURISTIC_CONFIDENCE_THRESHOLD))),
        fuzzy_threshold=float(os.environ.get("FUZZY_THRESHOLD", "0.75")),
        retrieval_limit=int(os.environ.get("RETRIEVAL_LIMIT", "10")),
        supports_research_cleaning=FEATURES["research_cleaning"],
        agent_role=APP_CONFIG["agent_role"],
        model=LLM_CONFIG["model"],
        classifier_model=LLM_CONFIG["classifier_model"],
    )


def get_config() -> Dict[str, Any]:
    """Return the complete configuration dictionary."""
    return {
        "llm": LLM_CONFIG,
        "app": APP_CONFIG,
        "features": FEATURES
    }
