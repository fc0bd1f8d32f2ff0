import re

_TAG_RE = re.compile(r"<[^>]*>")


def sanitize_string(v):
    """Drop HTML tags and surrounding whitespace from free-text input."""
    if not isinstance(v, str):
        return v
    return _TAG_RE.sub("", v).strip()
