"""
Display helpers for user text that carries injected [Context: ...] prefixes.
"""

DEFAULT_TITLE = "New Chat"


def strip_leading_brackets(text: str) -> str:
    """Strip leading [...] blocks (nested brackets included) from display text.

    A leading bracket that is never closed (e.g. a context prefix cut off by
    truncation) means the whole string is bracket content, so "" is returned.
    """
    result = text
    while result.startswith("["):
        depth = 0
        end = -1
        for i, ch in enumerate(result):
            if ch == "[":
                depth += 1
            elif ch == "]":
                depth -= 1
                if depth == 0:
                    end = i
                    break
        if end == -1:
            return ""
        result = result[end + 1:].lstrip()
    return result


def truncate_title(text: str, max_chars: int = 40) -> str:
    if len(text) > max_chars:
        return text[:max_chars] + "..."
    return text


def derive_title(text: str, max_chars: int = 40) -> str:
    """Conversation title from a user message: context stripped, truncated."""
    clean = strip_leading_brackets(text)
    return truncate_title(clean, max_chars) or DEFAULT_TITLE
