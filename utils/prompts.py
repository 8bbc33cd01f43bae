"""
Prompt templates for the chat context pipeline.
"""
from langchain_core.prompts import ChatPromptTemplate

# Intent Classification Prompt
INTENT_CLASSIFICATION_PROMPT = ChatPromptTemplate.from_messages([
    ("system", """Du analysierst Benutzeranfragen und entscheidest, welche Informationsquelle benötigt wird.

VERFÜGBARE INTENTS:
- image-generation: Bildgenerierung ("erstelle Bild", "visualisiere", "zeichne")
- deep-research: Komplexe Recherche, faktenbasierte Inhalte, mehrere Quellen
- party-document-search: Parteiprogramme, Positionen, Beschlüsse, interne Dokumente
- web-search: Aktuelle Nachrichten, externe Fakten, EXPLIZITE Websuche ("suche im netz")
- example-search: Social-Media-Beispiele, Vorlagen, Posts zum Thema
- informational-search: Sachfragen, die sich mit der Wissensbasis beantworten lassen
- no-retrieval: Begrüßungen, Dank, rein kreative Aufgaben OHNE Faktenbedarf

SCHRITT 1 - TIPPFEHLER ERKENNEN:
- Vertauschte Buchstaben: "recgerchiere" → "recherchiere"
- Fehlende Buchstaben: "recherchier" → "recherchiere"
- Umlaute: "grüne" = "grune" = "gruene"

SCHRITT 2 - INHALTSTYP ANALYSIEREN:
FAKTENBASIERT (→ deep-research oder web-search): Pressemitteilung, Artikel, Rede,
Argumentation, Faktencheck, Analyse, Bericht, "über [Thema]" mit faktischem Thema.
REIN KREATIV (→ no-retrieval): Tweet ohne Faktenthema, Slogan, Gedicht, Witz,
persönliche Nachrichten.

SCHRITT 3 - SUCHQUERY OPTIMIEREN:
Entferne Aufgabenanweisungen (schreib, erstelle, formuliere, verfasse ...) und behalte
NUR das faktische Thema.
Beispiel: "Schreib eine Pressemitteilung über die Klimapolitik der Grünen" → "Klimapolitik der Grünen"

SCHRITT 4 - KOMPLEXE ANFRAGEN ZERLEGEN:
Vergleicht oder kombiniert die Anfrage MEHRERE Themen, erstelle bis zu 3 subQueries.
Bei einfachen Anfragen setze subQueries auf null.

Antworte NUR mit JSON:
{{
  "typoAnalysis": {{"original": "...", "corrected": "..."}} | null,
  "contentType": "pressemitteilung" | "artikel" | "rede" | "argumentation" | "tweet" | "slogan" | null,
  "needsResearch": true | false,
  "intent": "<einer der Intents oben>",
  "searchQuery": "..." | null,
  "optimizedSearchQuery": "nur das faktische Thema" | null,
  "subQueries": ["thema1", "thema2"] | null,
  "reasoning": "..."
}}

Bei "no-retrieval" und "image-generation" setze searchQuery, optimizedSearchQuery und subQueries auf null."""),
    ("human", 'Analysiere: "{query}"')
])

# Research Brief Prompt
RESEARCH_BRIEF_PROMPT = ChatPromptTemplate.from_messages([
    ("system", """Du fasst zusammen, was eine Person in einem Gespräch tatsächlich recherchiert haben möchte.
Schreibe einen Rechercheauftrag aus 2-3 Sätzen. Nenne:
- was die Person wirklich wissen oder erstellen will,
- konkrete Einschränkungen (Region, Zeitraum, Zielgruppe),
- Vergleichsachsen, falls etwas verglichen werden soll.
Antworte nur mit dem Auftrag, ohne Einleitung."""),
    ("human", """Gesprächsverlauf:
{conversation}

Klassifizierte Suchanfrage: {query}
Teilfragen: {sub_queries}""")
])

# Single-pass Summary Prompt
DOCUMENT_SUMMARY_PROMPT = ChatPromptTemplate.from_messages([
    ("system", """Fasse das folgende Dokument präzise auf Deutsch zusammen.
Behalte Kernaussagen, Zahlen, Forderungen und Schlussfolgerungen bei.
Verwende kurze Absätze oder Stichpunkte. Erfinde nichts hinzu."""),
    ("human", "{text}")
])

# Map-phase Segment Summary Prompt
SEGMENT_SUMMARY_PROMPT = ChatPromptTemplate.from_messages([
    ("system", """Du erhältst Abschnitt {index} von {total} eines längeren Dokuments.
Fasse NUR diesen Abschnitt zusammen: Kernaussagen, Zahlen, Forderungen.
Keine Einleitung, keine Bewertung."""),
    ("human", "{text}")
])

# Reduce-phase Merge Prompt
SUMMARY_MERGE_PROMPT = ChatPromptTemplate.from_messages([
    ("system", """Du erhältst Teilzusammenfassungen aufeinanderfolgender Abschnitte eines Dokuments.
Führe sie zu EINER zusammenhängenden Zusammenfassung zusammen.
Entferne Wiederholungen, behalte die Reihenfolge der Argumentation bei."""),
    ("human", "{summaries}")
])

# Conversation Summary Prompt
CONVERSATION_SUMMARY_PROMPT = ChatPromptTemplate.from_messages([
    ("system", """Fasse den bisherigen Gesprächsverlauf knapp zusammen.
Nenne die besprochenen Themen, getroffene Entscheidungen und offene Fragen."""),
    ("human", "{text}")
])

# Research Synthesis Cleaning Prompt
RESEARCH_CLEANING_PROMPT = ChatPromptTemplate.from_messages([
    ("system", """Du bereitest Rechercheergebnisse für eine Antwort vor.
Verdichte die folgenden Suchergebnisse zu einer zusammenhängenden, sachlichen Synthese
von höchstens {max_chars} Zeichen. Entferne Dopplungen und Navigationsreste,
behalte Zahlen, Quellenangaben und widersprüchliche Aussagen bei.
Rechercheauftrag: {directive}"""),
    ("human", "{context}")
])
