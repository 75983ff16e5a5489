"""Prompt templates for the LLM enrichers.

Every enricher that calls the chat model uses a dedicated prompt from this
module.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from langchain_core.messages import HumanMessage, SystemMessage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

# ── 1. Image alternative text ─────────────────────────────────────────

ALT_TEXT_SYSTEM = """\
You write alternative text for images embedded in documents.

Given the image reference and the surrounding text, reply with one short,
descriptive sentence (at most 15 words) suitable as Markdown alt text.
Reply with the alt text only, without quotes.
"""


def build_alt_text_prompt(image_ref: str, context: str) -> list[BaseMessage]:
    """Build the prompt describing one image from its file reference and context."""
    return [
        SystemMessage(content=ALT_TEXT_SYSTEM),
        HumanMessage(content=f"Image: {image_ref}\n\nSurrounding text:\n{context}"),
    ]


# ── 2. Summary ────────────────────────────────────────────────────────

SUMMARY_SYSTEM = """\
You summarise passages for a search index.

Reply with a summary of the passage in at most two sentences.  Do not add
information that is not in the passage.
"""


def build_summary_prompt(text: str) -> list[BaseMessage]:
    return [
        SystemMessage(content=SUMMARY_SYSTEM),
        HumanMessage(content=text),
    ]


# ── 3. Sentiment ──────────────────────────────────────────────────────

SENTIMENTS = ("positive", "neutral", "negative")

SENTIMENT_SYSTEM = f"""\
You classify the overall sentiment of a passage.

Reply with exactly one word, one of: {", ".join(SENTIMENTS)}.
"""


def build_sentiment_prompt(text: str) -> list[BaseMessage]:
    return [
        SystemMessage(content=SENTIMENT_SYSTEM),
        HumanMessage(content=text),
    ]


# ── 4. Keywords ───────────────────────────────────────────────────────

KEYWORDS_SYSTEM = """\
You extract search keywords from a passage.

Reply with a JSON array of 3-8 short keyword strings, most important first.
Respond with **only** valid JSON.
"""


def build_keywords_prompt(text: str) -> list[BaseMessage]:
    return [
        SystemMessage(content=KEYWORDS_SYSTEM),
        HumanMessage(content=text),
    ]
