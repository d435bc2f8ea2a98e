from typing import Optional


def shorten(text: Optional[str], limit: int = 200) -> str:
    """Bound a value (URL, header) before it is written to logs or span attributes."""
    if not text:
        return ""
    return text if len(text) <= limit else f"{text[:limit]}..."
