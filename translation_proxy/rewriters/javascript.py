import re

from translation_proxy.codec import UrlCodec

# Quoted absolute URL literals only. Strings starting with "/" are far too
# common in scripts for other purposes to be rewritten safely.
_ABSOLUTE_URL_RE = re.compile(
    r"""(?P<head>(?P<quote>["']))(?P<url>https?://[^"'\n]*?)(?P<tail>(?P=quote))""",
    re.IGNORECASE,
)
_ROOT_RELATIVE_REDIRECT_RE = re.compile(
    r"""(?P<head>^\s*window\.location\.href\s*=\s*(?P<quote>["'])\s*)(?P<url>/[^"'\n]*)(?P<tail>(?P=quote))""",
    re.MULTILINE,
)


class JsRewriter:
    """Conservative URL substitution for inline scripts and event handlers."""

    def __init__(self, codec: UrlCodec):
        self.codec = codec

    def rewrite(self, javascript: str, scheme: str, host: str) -> str:
        if not javascript:
            return javascript

        def replacer(match: re.Match) -> str:
            url = self.codec.encode(match.group("url"), scheme, host)
            return f"{match.group('head')}{url}{match.group('tail')}"

        javascript = _ABSOLUTE_URL_RE.sub(replacer, javascript)
        return _ROOT_RELATIVE_REDIRECT_RE.sub(replacer, javascript)
