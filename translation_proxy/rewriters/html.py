import logging
import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple

from bs4 import BeautifulSoup
from bs4.builder import HTMLParserTreeBuilder
from bs4.element import NavigableString, Tag

from translation_proxy.codec import UrlCodec
from translation_proxy.config import ProxyConfiguration
from translation_proxy.rewriters.css import CssRewriter
from translation_proxy.rewriters.javascript import JsRewriter

logger = logging.getLogger("uvicorn.error")

# element -> attributes holding a URL
URL_ATTRIBUTES: Dict[str, Tuple[str, ...]] = {
    "a": ("href",),
    "area": ("href",),
    "link": ("href",),
    "img": ("src", "longdesc", "srcset"),
    "object": ("codebase", "data"),
    "q": ("cite",),
    "blockquote": ("cite",),
    "ins": ("cite",),
    "del": ("cite",),
    "form": ("action",),
    "input": ("src",),
    "head": ("profile",),
    "script": ("src",),
    "iframe": ("src",),
    "base": ("href",),
}

# Served straight from the origin when static assets are not proxied; some
# origins' CORS policy breaks when these are loaded through the proxy.
STATIC_ASSET_ATTRIBUTES: Dict[str, FrozenSet[str]] = {
    "link": frozenset({"href"}),
    "script": frozenset({"src"}),
    "img": frozenset({"src", "longdesc", "srcset"}),
}

EVENT_ATTRIBUTES = (
    "onclick",
    "ondblclick",
    "onmousedown",
    "onmouseup",
    "onmouseover",
    "onmousemove",
    "onmouseout",
    "onkeypress",
    "onkeydown",
    "onkeyup",
    "onfocus",
    "onblur",
    "onload",
    "onunload",
    "onsubmit",
    "onreset",
    "onselect",
    "onchange",
)

JAVASCRIPT_TYPES = frozenset(
    {
        "text/javascript",
        "application/javascript",
        "application/x-javascript",
        "text/ecmascript",
        "application/ecmascript",
        "module",
    }
)

_META_REFRESH_URL_RE = re.compile(r"url\s*=", re.IGNORECASE)


@dataclass(frozen=True)
class ParseProfile:
    """
    Per-parse parser settings. A fresh tree builder is created for every
    document so overrides never leak between concurrent requests.

    With html.parser, `<form>` is not void and `<option>` never closes its
    ancestors, so the default profile only has to keep it that way; a
    profile that lists `form` as void would break form nesting.
    """

    void_elements: FrozenSet[str]

    def builder(self) -> HTMLParserTreeBuilder:
        # multi-valued attributes off: class/rel stay plain strings
        return HTMLParserTreeBuilder(
            multi_valued_attributes=None,
            empty_element_tags=set(self.void_elements),
        )


DEFAULT_PARSE_PROFILE = ParseProfile(
    void_elements=frozenset(HTMLParserTreeBuilder().empty_element_tags) - {"form"}
)


def _is_css(tag: Tag) -> bool:
    return (tag.get("type") or "text/css").strip().lower() == "text/css"


def _is_javascript(tag: Tag) -> bool:
    script_type = (tag.get("type") or "").strip().lower()
    return not script_type or script_type in JAVASCRIPT_TYPES


class HtmlRewriter:
    """Rewrites every URL reference of a parsed HTML document through the codec."""

    def __init__(
        self,
        config: ProxyConfiguration,
        codec: UrlCodec,
        css_rewriter: Optional[CssRewriter] = None,
        js_rewriter: Optional[JsRewriter] = None,
        parse_profile: ParseProfile = DEFAULT_PARSE_PROFILE,
    ):
        self.codec = codec
        self.css = css_rewriter or CssRewriter(config, codec)
        self.js = js_rewriter or JsRewriter(codec)
        self.parse_profile = parse_profile
        self.frame_target = config.frame_target
        self.direct_attributes = (
            {} if config.proxy_static_assets else STATIC_ASSET_ATTRIBUTES
        )

    def parse(self, markup: str) -> BeautifulSoup:
        return BeautifulSoup(markup, builder=self.parse_profile.builder())

    def rewrite(self, markup: str, scheme: str, host: str) -> str:
        soup = self.parse(markup)
        self.transform(soup, scheme, host)
        return str(soup)

    def transform(self, soup: BeautifulSoup, scheme: str, host: str) -> None:
        self._rewrite_meta_refresh(soup, scheme, host)
        self._rewrite_url_attributes(soup, scheme, host)
        self._rewrite_styles(soup, scheme, host)
        self._rewrite_scripts(soup, scheme, host)
        self._rewrite_anchors(soup, scheme, host)

    def can_proxy_to_self(self, element: str, attribute: str) -> bool:
        return attribute not in self.direct_attributes.get(element, ())

    def rewrite_srcset(
        self, srcset: str, scheme: str, host: str, can_proxy_to_self: bool = True
    ) -> str:
        """Rewrite the URL of each ``url [descriptor]`` candidate, keeping separators."""
        candidates = []
        for candidate in srcset.split(","):
            match = re.match(r"(\s*)(\S+)(.*)", candidate, re.DOTALL)
            if match:
                url = self.codec.encode(match.group(2), scheme, host, can_proxy_to_self)
                candidate = f"{match.group(1)}{url}{match.group(3)}"
            candidates.append(candidate)
        return ",".join(candidates)

    def _rewrite_meta_refresh(self, soup: BeautifulSoup, scheme: str, host: str):
        for meta in soup.find_all("meta"):
            if (meta.get("http-equiv") or "").strip().lower() != "refresh":
                continue
            content = meta.get("content")
            if not content:
                continue
            parts = _META_REFRESH_URL_RE.split(content, maxsplit=1)
            if len(parts) < 2:
                continue
            target = parts[1].strip()
            quote = target[0] if target[:1] in ("'", '"') else ""
            if quote:
                target = target.strip(quote)
            target = self.codec.encode(target, scheme, host, can_proxy_to_self=True)
            meta["content"] = f"{parts[0]}url={quote}{target}{quote}"

    def _rewrite_url_attributes(self, soup: BeautifulSoup, scheme: str, host: str):
        for element, attributes in URL_ATTRIBUTES.items():
            for tag in soup.find_all(element):
                for attribute in attributes:
                    value = tag.get(attribute)
                    if value is None:
                        continue
                    proxy_self = self.can_proxy_to_self(element, attribute)
                    if attribute == "srcset":
                        tag[attribute] = self.rewrite_srcset(value, scheme, host, proxy_self)
                    else:
                        tag[attribute] = self.codec.encode(value, scheme, host, proxy_self)

    def _rewrite_styles(self, soup: BeautifulSoup, scheme: str, host: str):
        for style in soup.find_all("style"):
            if not _is_css(style):
                continue
            for child in list(style.children):
                if isinstance(child, NavigableString):
                    child.replace_with(type(child)(self.css.rewrite(str(child), scheme, host)))
        for tag in soup.find_all(style=True):
            tag["style"] = self.css.rewrite(tag["style"], scheme, host)

    def _rewrite_scripts(self, soup: BeautifulSoup, scheme: str, host: str):
        for script in soup.find_all("script"):
            if not _is_javascript(script):
                continue
            for child in list(script.children):
                if isinstance(child, NavigableString):
                    child.replace_with(type(child)(self.js.rewrite(str(child), scheme, host)))
        for attribute in EVENT_ATTRIBUTES:
            for tag in soup.find_all(attrs={attribute: True}):
                tag[attribute] = self.js.rewrite(tag[attribute], scheme, host)

    def _rewrite_anchors(self, soup: BeautifulSoup, scheme: str, host: str):
        for anchor in soup.find_all("a"):
            href = anchor.get("href")
            if href is not None and href.startswith("javascript:"):
                anchor["href"] = self.js.rewrite(href, scheme, host)
            # keep navigation inside the hosting frame
            if anchor.get("target") in ("_top", "_blank"):
                anchor["target"] = self.frame_target
            if anchor.get("rel") == "external":
                del anchor["rel"]
