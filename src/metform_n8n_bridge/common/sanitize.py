"""Plain-text sanitization for submitted form values.

Modelled on WordPress' ``sanitize_text_field`` and ``sanitize_textarea_field``:
markup is stripped, stray ``<`` characters are escaped and control characters
are dropped. The output never contains ``<``, which keeps the transform
idempotent.
"""

import re
from typing import Any

_NEWLINES = re.compile(r"\r\n?")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]")
_SCRIPT_STYLE = re.compile(
    r"<(script|style)[^>]*?>.*?</\1\s*>", re.IGNORECASE | re.DOTALL
)
_TAGS = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"[\t\n ]+")


def sanitize_text(value: str, keep_newlines: bool = False) -> str:
    """Sanitize a single string value.

    With ``keep_newlines`` tabs and line breaks survive (textarea input);
    otherwise every whitespace run collapses to a single space.
    """
    text = _NEWLINES.sub("\n", value)
    text = _CONTROL_CHARS.sub("", text)
    text = _SCRIPT_STYLE.sub("", text)
    text = _TAGS.sub("", text)
    text = text.replace("<", "&lt;")
    if not keep_newlines:
        text = _WHITESPACE.sub(" ", text)
    return text.strip()


def sanitize_fields(data: Any) -> Any:
    """Recursively sanitize every string leaf of a submission tree.

    Mapping keys, their order and sequence lengths are left untouched.
    """
    if isinstance(data, dict):
        return {key: sanitize_fields(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [sanitize_fields(item) for item in data]
    if isinstance(data, str):
        return sanitize_text(data, keep_newlines=True)
    # numbers, booleans and None cannot carry markup
    return data
