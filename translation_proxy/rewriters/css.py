import re

from translation_proxy.codec import UrlCodec
from translation_proxy.config import ProxyConfiguration

_CSS_IMPORT_RE = re.compile(r"""(@import\s*['"])(.*?)(['"])""", re.IGNORECASE)
_CSS_URL_RE = re.compile(r"""(url\s*\(\s*['"]?)(.*?)(['"]?\s*\))""", re.IGNORECASE)

_REWRITABLE_PREFIXES = ("http://", "https://", "/")


class CssRewriter:
    """Rewrites ``@import "..."`` and ``url(...)`` references in stylesheet text."""

    def __init__(self, config: ProxyConfiguration, codec: UrlCodec):
        self.codec = codec
        self.proxy_static_assets = config.proxy_static_assets

    def rewrite(self, css: str, scheme: str, host: str) -> str:
        if not css:
            return css

        def replacer(match: re.Match) -> str:
            url = match.group(2)
            # document-relative paths resolve against the rewritten page location
            if url.lower().startswith(_REWRITABLE_PREFIXES):
                url = self.codec.encode(
                    url, scheme, host, can_proxy_to_self=self.proxy_static_assets
                )
            return f"{match.group(1)}{url}{match.group(3)}"

        css = _CSS_IMPORT_RE.sub(replacer, css)
        return _CSS_URL_RE.sub(replacer, css)
