import codecs
import sys
from typing import Dict, Optional, Tuple

# Inbound request headers copied onto the outbound request
FORWARDED_REQUEST_HEADERS = (
    "user-agent",
    "x-requested-with",
    "accept-language",
    "accept-encoding",
    "accept",
    "pragma",
    "cache-control",
)

# Encodings the relay cannot decode, removed from Accept-Encoding
UNSUPPORTED_ENCODINGS = frozenset({"sdch", "br"})

# Upstream response headers copied verbatim
MIRRORED_RESPONSE_HEADERS = ("cache-control", "pragma")

DEFAULT_CHARSET = sys.getdefaultencoding()


def parse_content_type(value: Optional[str]) -> Tuple[str, Dict[str, str]]:
    """Split a Content-Type value into its lowercase media type and parameters."""
    if not value:
        return "", {}
    media_type, _, rest = value.partition(";")
    params: Dict[str, str] = {}
    for item in rest.split(";"):
        key, sep, param = item.partition("=")
        if sep and key.strip():
            params[key.strip().lower()] = param.strip()
    return media_type.strip().lower(), params


def outbound_content_type(value: Optional[str]) -> Optional[str]:
    """Media type plus the charset (and multipart boundary) of an inbound Content-Type."""
    media_type, params = parse_content_type(value)
    if not media_type:
        return None
    result = media_type
    for name in ("charset", "boundary"):
        if params.get(name):
            result = f"{result}; {name}={params[name]}"
    return result


def filter_accept_encoding(value: str) -> str:
    tokens = []
    for token in value.split(","):
        token = token.strip()
        if token and token.split(";", 1)[0].strip().lower() not in UNSUPPORTED_ENCODINGS:
            tokens.append(token)
    return ", ".join(tokens)


def resolve_charset(charset: Optional[str]) -> str:
    """
    Normalise a declared charset and resolve it to a Python codec name.

    Surrounding quotes are dropped and the common ``utf8`` spelling is
    accepted. Raises LookupError for names no codec is registered for.
    """
    if charset is None:
        return codecs.lookup(DEFAULT_CHARSET).name
    charset = charset.replace('"', "").replace("'", "").strip()
    if charset.lower() == "utf8":
        charset = "utf-8"
    return codecs.lookup(charset).name
