"""
Response classification for finished agent turns.

Decides whether a background turn stays a quick "task" in the drawer or
becomes a full "conversation", and extracts the one-line drawer summary.
"""

import re
from typing import List, Tuple

TASK = "task"
CONVERSATION = "conversation"

# Marker the model emits when the reply belongs in the full assistant view
OPEN_ASSISTANT_MARKER = "[OPEN_ASSISTANT]"

_SENTENCE_END_RE = re.compile(r"[.!]\s|[.!]$")

SUMMARY_MAX_CHARS = 80


def classify_response(
    text_content: str,
    tool_names: List[str],
    has_plan: bool = False,
    wants_assistant: bool = False,
) -> str:
    """Classify a finished turn as TASK or CONVERSATION. First matching rule wins."""
    if has_plan or wants_assistant:
        return CONVERSATION

    trimmed = text_content.strip()
    has_tools = len(tool_names) > 0

    # A real question deserves the full view
    if "?" in trimmed and len(trimmed) > 50:
        return CONVERSATION

    if len(trimmed) > 200:
        return CONVERSATION

    if has_tools and len(trimmed) < 100:
        return TASK

    if not has_tools and len(trimmed) < 100:
        return TASK

    return TASK if has_tools else CONVERSATION


def extract_task_summary(text_content: str, tool_names: List[str]) -> str:
    """Short drawer summary: the first sentence, or an "Executed <tool>" fallback."""
    trimmed = text_content.strip()
    if trimmed:
        m = _SENTENCE_END_RE.search(trimmed)
        first_sentence = trimmed[:m.start() + 1] if m and m.start() > 0 else trimmed
        if len(first_sentence) <= SUMMARY_MAX_CHARS:
            return first_sentence
        return first_sentence[:SUMMARY_MAX_CHARS - 3] + "..."
    if tool_names:
        more = f" +{len(tool_names) - 1} more" if len(tool_names) > 1 else ""
        return f"Executed {tool_names[0]}{more}"
    return "Task completed"


def wants_assistant(text: str) -> bool:
    return OPEN_ASSISTANT_MARKER in text


def parse_response(text: str) -> Tuple[str, bool]:
    """Remove every OPEN_ASSISTANT marker. Returns (clean_text, marker_was_present)."""
    if OPEN_ASSISTANT_MARKER in text:
        return "".join(text.split(OPEN_ASSISTANT_MARKER)).strip(), True
    return text, False
