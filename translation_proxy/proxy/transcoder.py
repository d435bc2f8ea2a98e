import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from bs4.dammit import EncodingDetector

from translation_proxy.proxy.headers import parse_content_type, resolve_charset
from translation_proxy.rewriters import CssRewriter, HtmlRewriter

logger = logging.getLogger("uvicorn.error")

DECOMPRESSIBLE_ENCODINGS = ("gzip", "deflate")
REWRITTEN_MEDIA_TYPES = ("text/html", "text/css")


@dataclass(frozen=True)
class TranscodePlan:
    """How the body of one upstream response is handled."""

    media_type: str
    charset: Optional[str]
    content_encoding: Optional[str]

    @property
    def decompress(self) -> bool:
        return self.content_encoding in DECOMPRESSIBLE_ENCODINGS

    @property
    def keep_encoding(self) -> bool:
        """Body stays compressed and Content-Encoding is relayed to the caller."""
        return bool(self.content_encoding) and not self.decompress

    @property
    def rewrite(self) -> bool:
        return not self.keep_encoding and self.media_type in REWRITTEN_MEDIA_TYPES


class ResponseTranscoder:
    """Decides between rewriting and passthrough, and rewrites text bodies."""

    def __init__(self, html_rewriter: HtmlRewriter, css_rewriter: CssRewriter):
        self.html = html_rewriter
        self.css = css_rewriter

    def plan(self, headers: httpx.Headers) -> TranscodePlan:
        media_type, params = parse_content_type(headers.get("content-type"))
        encoding = (headers.get("content-encoding") or "").strip().lower()
        if encoding == "identity":
            encoding = ""
        return TranscodePlan(
            media_type=media_type,
            charset=params.get("charset"),
            content_encoding=encoding or None,
        )

    def decode(self, body: bytes, plan: TranscodePlan):
        """Decode a text body. A byte order mark wins over the declared charset."""
        encoding = resolve_charset(plan.charset)
        body, bom_encoding = EncodingDetector.strip_byte_order_mark(body)
        if bom_encoding:
            encoding = resolve_charset(bom_encoding)
        return body.decode(encoding, errors="replace"), encoding

    def transcode(self, body: bytes, plan: TranscodePlan, scheme: str, host: str) -> bytes:
        """
        Rewrite a fully read, already decompressed HTML or CSS body.

        Args:
            body: Decompressed response bytes
            plan: The plan the body was read under; ``plan.rewrite`` must be set
            scheme: Scheme of the mirrored page
            host: Host of the mirrored page

        Returns:
            The rewritten body, encoded with the resolved charset
        """
        text, encoding = self.decode(body, plan)
        if plan.media_type == "text/html":
            text = self.html.rewrite(text, scheme, host)
        else:
            text = self.css.rewrite(text, scheme, host)
        logger.debug(f"[Transcoder] Rewrote {plan.media_type} body from {scheme}://{host} ({encoding})")
        return text.encode(encoding, errors="xmlcharrefreplace")
