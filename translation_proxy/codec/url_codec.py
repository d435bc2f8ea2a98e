import logging
from typing import Optional
from urllib.parse import SplitResult, urlsplit

from translation_proxy.config import ProxyConfiguration

logger = logging.getLogger("uvicorn.error")

PROXIED_SCHEMES = ("http", "https")


def authority(parts: SplitResult) -> str:
    """Host (lowercase) plus explicit port, without userinfo. Raises ValueError on a bad port."""
    host = parts.hostname
    if not host:
        raise ValueError(f"URL has no host: {parts.geturl()}")
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    return f"{host}:{port}" if port is not None else host


def _path_and_query(parts: SplitResult) -> str:
    path = parts.path or "/"
    if parts.query:
        path = f"{path}?{parts.query}"
    if parts.fragment:
        path = f"{path}#{parts.fragment}"
    return path


class UrlCodec:
    """
    Translates between real third-party URLs and proxy URLs of the form
    ``{public_url}{proxy_prefix}{scheme}/{host}{path_and_query}``.

    Both directions are pure and safe to call concurrently.
    """

    def __init__(self, config: ProxyConfiguration):
        self.public_url = config.public_url
        self.proxy_prefix = config.proxy_prefix

    def proxy_url(self, scheme: str, host: str, path_and_query: str) -> str:
        return f"{self.public_url}{self.proxy_prefix}{scheme}/{host}{path_and_query}"

    def encode(
        self,
        url: Optional[str],
        context_scheme: str,
        context_host: str,
        can_proxy_to_self: bool = True,
    ) -> Optional[str]:
        """
        Rewrite a URL found in a page served from ``context_scheme://context_host``.

        Args:
            url: Raw URL as it appears in the document or header
            context_scheme: Scheme of the page the URL was found in
            context_host: Host (with port, if any) of that page
            can_proxy_to_self: When False the URL is kept pointing at the origin

        Returns:
            The proxy URL, an absolute origin URL for root-relative paths when
            proxying is disabled, or the input unchanged. Parse failures return
            the input unchanged.
        """
        if not url:
            return url
        try:
            if url.startswith("//"):
                parts = urlsplit(url)
                host = authority(parts)
                if can_proxy_to_self and host == context_host.lower():
                    return self.proxy_url(context_scheme, host, _path_and_query(parts))
                return url
            if url.startswith("/"):
                if can_proxy_to_self:
                    return self.proxy_url(context_scheme, context_host, url)
                return f"{context_scheme}://{context_host}{url}"
            lowered = url[:8].lower()
            if lowered.startswith("http://") or lowered.startswith("https://"):
                if not can_proxy_to_self:
                    return url
                parts = urlsplit(url)
                return self.proxy_url(
                    parts.scheme.lower(), authority(parts), _path_and_query(parts)
                )
        except ValueError as e:
            logger.debug(f"[UrlCodec] Leaving unparsable URL as is: {url!r} ({e})")
            return url
        return url

    def decode(self, proxy_url: Optional[str]) -> Optional[str]:
        """
        Recover the real URL from a proxy URL (absolute or path-only).

        Returns None when the prefix is missing, the scheme segment is not
        http/https, or the remaining path does not form a valid URL.
        """
        if not proxy_url:
            return None
        if "://" in proxy_url.split("?", 1)[0]:
            try:
                parts = urlsplit(proxy_url)
            except ValueError:
                return None
            path, query = parts.path, parts.query
        else:
            path, _, query = proxy_url.partition("?")

        index = path.lower().find(self.proxy_prefix.lower())
        if index < 0:
            return None
        remainder = path[index + len(self.proxy_prefix):]
        scheme, sep, rest = remainder.partition("/")
        if not sep or scheme not in PROXIED_SCHEMES:
            return None

        real_url = f"{scheme}://{rest}"
        if query:
            real_url = f"{real_url}?{query}"
        try:
            parts = urlsplit(real_url)
            authority(parts)
        except ValueError as e:
            logger.warning(f"[UrlCodec] Failed to translate proxy URL {proxy_url!r}: {e}")
            return None
        if not parts.path:
            real_url = f"{scheme}://{parts.netloc}/" + (f"?{query}" if query else "")
        return real_url
