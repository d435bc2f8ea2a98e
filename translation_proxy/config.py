from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple
from urllib.parse import urlparse

from translation_proxy import vars as env


@dataclass(frozen=True)
class ProxyConfiguration:
    """
    Resolved proxy settings, built once at startup and handed to every
    component that needs them.

    Attributes:
        public_url: Absolute base URL of this service, without trailing slash
        proxy_prefix: Path segment marking proxied routes, e.g. "/proxy/"
        proxy_static_assets: Whether CSS/JS/image references go through the proxy
        allowed_referrers: Ordered referrer prefixes allowed to use the proxy
        enforce_guards: Referrer gate and private network check switch
        timeout: Outbound fetch timeout in seconds
        frame_target: Frame name forced onto links that would leave the frame
    """

    public_url: str
    proxy_prefix: str = "/proxy/"
    proxy_static_assets: bool = True
    allowed_referrers: Tuple[str, ...] = field(default_factory=tuple)
    enforce_guards: bool = True
    timeout: float = 30.0
    frame_target: str = "letsmtTranslatePageIframe"

    def __post_init__(self):
        parsed = urlparse(self.public_url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"public_url must be an absolute http(s) URL: {self.public_url!r}")
        if (
            not self.proxy_prefix
            or not self.proxy_prefix.startswith("/")
            or not self.proxy_prefix.endswith("/")
        ):
            raise ValueError(
                f"proxy_prefix must start and end with '/': {self.proxy_prefix!r}"
            )
        # frozen dataclass, so normalise through object.__setattr__
        object.__setattr__(self, "public_url", self.public_url.rstrip("/"))
        object.__setattr__(self, "allowed_referrers", tuple(self.allowed_referrers))

    @classmethod
    def from_env(cls) -> "ProxyConfiguration":
        return cls(
            public_url=env.PUBLIC_URL,
            proxy_prefix=env.PROXY_PREFIX,
            proxy_static_assets=env.PROXY_STATIC_ASSETS,
            allowed_referrers=tuple(env.ALLOWED_REFERRERS),
            enforce_guards=env.PROXY_ENFORCE_GUARDS,
            timeout=env.PROXY_TIMEOUT,
            frame_target=env.PROXY_FRAME_TARGET,
        )
