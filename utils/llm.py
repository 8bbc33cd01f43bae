"""
LLM setup and utility functions.
"""
from google.api_core import exceptions as google_exceptions
from google.genai import errors as genai_errors
import httpx
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel, Field
from typing import Dict, Any, List, Optional
import logging

from config import LLM_CONFIG

logger = logging.getLogger(__name__)

JSON_OBJECT = "json_object"
TEXT = "text"

# Transport failures and server-side outages, as opposed to bad requests
UNAVAILABLE_ERRORS = (
    ConnectionError,
    TimeoutError,
    httpx.TransportError,
    genai_errors.ServerError,
    google_exceptions.ServiceUnavailable,
    google_exceptions.InternalServerError,
    google_exceptions.DeadlineExceeded,
)


class LLMServiceError(Exception):
    """A language-model call failed or returned an unusable payload."""


class LLMUnavailableError(LLMServiceError):
    """The language-model transport could not be reached at all."""


class LLMRequest(BaseModel):
    """One invocation of the language-model service."""
    system_prompt: str
    messages: List[Dict[str, str]] = Field(default_factory=list)
    model: Optional[str] = None
    max_tokens: int = 1024
    temperature: float = 0.1
    response_format: str = TEXT

    @classmethod
    def from_prompt(cls, prompt: ChatPromptTemplate, inputs: Dict[str, Any], **options) -> "LLMRequest":
        """
        Render a chat prompt template into a request.

        The first system message becomes the system prompt; everything else
        is passed on as conversation messages.
        """
        system_parts = []
        messages = []
        for message in prompt.format_messages(**inputs):
            if isinstance(message, SystemMessage):
                system_parts.append(str(message.content))
            elif isinstance(message, AIMessage):
                messages.append({"role": "assistant", "content": str(message.content)})
            else:
                messages.append({"role": "user", "content": str(message.content)})
        return cls(system_prompt="\n\n".join(system_parts), messages=messages, **options)


class LLMResponse(BaseModel):
    """Text returned by the language-model service."""
    content: str = ""


def get_llm(model: Optional[str] = None,
            temperature: Optional[float] = None,
            max_tokens: Optional[int] = None,
            json_mode: bool = False) -> ChatGoogleGenerativeAI:
    """
    Initialize and return the LLM instance.

    Returns:
        ChatGoogleGenerativeAI: Configured LLM instance
    """
    try:
        kwargs = {
            "model": model or LLM_CONFIG["model"],
            "temperature": LLM_CONFIG["temperature"] if temperature is None else temperature,
            "api_key": LLM_CONFIG["api_key"],
            "max_retries": LLM_CONFIG["max_retries"],
        }
        if max_tokens:
            kwargs["max_output_tokens"] = max_tokens
        if json_mode:
            kwargs["response_mime_type"] = "application/json"
        return ChatGoogleGenerativeAI(**kwargs)
    except Exception as e:
        logger.error(f"Failed to initialize LLM: {str(e)}")
        raise LLMUnavailableError(f"LLM initialization failed: {str(e)}") from e


def to_langchain_messages(request: LLMRequest) -> List[BaseMessage]:
    """Convert a request into LangChain chat messages."""
    messages: List[BaseMessage] = []
    if request.system_prompt:
        messages.append(SystemMessage(content=request.system_prompt))
    for message in request.messages:
        if message.get("role") == "assistant":
            messages.append(AIMessage(content=message.get("content", "")))
        else:
            messages.append(HumanMessage(content=message.get("content", "")))
    return messages


def _content_to_text(content: Any) -> str:
    if isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return "".join(parts)
    return str(content or "")


class LLMService:
    """Language-model invocation service backed by Gemini through LangChain."""

    async def complete(self, request: LLMRequest) -> LLMResponse:
        """
        Run one completion.

        Raises:
            LLMUnavailableError: The model endpoint could not be reached
            LLMServiceError: The call failed for any other reason
        """
        llm = get_llm(
            model=request.model,
            temperature=request.temperature,
            max_tokens=request.max_tokens,
            json_mode=request.response_format == JSON_OBJECT,
        )
        try:
            response = await llm.ainvoke(to_langchain_messages(request))
        except UNAVAILABLE_ERRORS as e:
            logger.error(f"LLM endpoint unreachable: {str(e)}")
            raise LLMUnavailableError(str(e)) from e
        except Exception as e:
            logger.error(f"LLM call failed: {str(e)}")
            raise LLMServiceError(str(e)) from e
        return LLMResponse(content=_content_to_text(response.content))

