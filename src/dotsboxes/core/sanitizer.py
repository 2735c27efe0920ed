"""Text sanitization for free text carried inside a protocol line.

Names, chat messages and refusal reasons are embedded in a single
newline-terminated command. Anything that could split that line or hide
in it is stripped before the text is stored or rebroadcast.
"""

import re

# Every C0 control char (newlines included) plus DEL
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")

# Zero-width and BOM characters
_ZERO_WIDTH_RE = re.compile(
    r"[\u200b\u200c\u200d\u2060\ufeff\u00ad]"
)

MAX_NAME_LENGTH = 32


def sanitize_text(text: str) -> str:
    """Strip control and zero-width characters. Preserves normal unicode."""
    text = _CONTROL_RE.sub("", text)
    text = _ZERO_WIDTH_RE.sub("", text)
    return text


def sanitize_name(name: str) -> str:
    """Sanitize a display name and clamp its length. May return ''."""
    return sanitize_text(name).strip()[:MAX_NAME_LENGTH]
