"""
Intent heuristics for routing user input.

is_ai_intent tells search boxes when a query is really an agent command;
should_force_plan decides whether the first message of a conversation must
start with a createPlan call.
"""

import logging
import re
from typing import List

from agent.turns import Turn, turn_text

logger = logging.getLogger(__name__)


ACTION_VERBS = frozenset({
    "create", "make", "add", "move", "delete", "remove", "change", "set",
    "turn", "rotate", "scale", "color", "paint", "place", "put", "build",
    "spawn", "generate", "duplicate", "copy", "rename", "hide", "show",
})

KNOWN_TYPES = frozenset({
    "cube", "sphere", "box", "cylinder", "cone", "torus", "plane", "light", "camera",
})

_CONTEXT_PREFIX_RE = re.compile(r"^\[context:.*\]\s*", re.IGNORECASE)
_CREATIVE_VERBS_RE = re.compile(
    r"\b(build|create|design|make|help me build|help me create|help me make|help me design)\b"
)
_SIMPLE_OBJECT_RE = re.compile(
    r"^(a |an |the )?(red |blue |green |big |small )?(cube|box|sphere|ball|cylinder|cone|torus|plane)\s*$"
)


def is_ai_intent(query: str) -> bool:
    words = query.strip().lower().split()
    if not words:
        return False
    if words[0] in ACTION_VERBS:
        return True
    if len(words) >= 3:
        return True
    return len(words) == 1 and words[0] in KNOWN_TYPES


def should_force_plan(turns: List[Turn]) -> bool:
    """True for a first, creative request that is more than one simple object."""
    if any(t.role == "assistant" for t in turns):
        return False

    last_user = next((t for t in reversed(turns) if t.role == "user"), None)
    if last_user is None:
        return False

    text = turn_text(last_user).lower()
    # Greedy so nested brackets inside the context prefix are consumed too
    text = _CONTEXT_PREFIX_RE.sub("", text, count=1).strip()
    if not text:
        return False

    cleaned = _CREATIVE_VERBS_RE.sub("", text, count=1).strip()
    result = bool(_CREATIVE_VERBS_RE.search(text)) and not _SIMPLE_OBJECT_RE.match(cleaned)
    if result:
        logger.info("Forcing createPlan tool for complex request")
    return result
