import logging
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlsplit, urlunsplit

import httpx
from fastapi import Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse
from opentelemetry import trace

from translation_proxy.codec import UrlCodec, authority
from translation_proxy.config import ProxyConfiguration
from translation_proxy.errors import ClassifiedRejection, ProxyError, UnexpectedFailure
from translation_proxy.guard import is_private, resolve_host
from translation_proxy.proxy.headers import (
    FORWARDED_REQUEST_HEADERS,
    MIRRORED_RESPONSE_HEADERS,
    filter_accept_encoding,
    outbound_content_type,
)
from translation_proxy.proxy.transcoder import ResponseTranscoder, TranscodePlan
from translation_proxy.rewriters import CssRewriter, HtmlRewriter
from translation_proxy.utils import shorten
from translation_proxy.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)
from translation_proxy.utils.traced_requests import traced_request

tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

Resolver = Callable[[str], Awaitable[Sequence[str]]]

# httpx adds these on every request unless told otherwise; only the
# inbound values from the allow-list may reach the origin
_CLIENT_DEFAULT_HEADERS = ("accept", "accept-encoding", "user-agent")


def inbound_path_and_query(request: Request) -> str:
    """Path and query of the inbound request, with the path exactly as sent."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        path = raw_path.split(b"?", 1)[0].decode("latin-1")
    else:
        path = request.url.path
    query = request.url.query
    return f"{path}?{query}" if query else path


def pinned_url(target: str, address: str) -> str:
    """``target`` with its host replaced by an already checked IP address."""
    parts = urlsplit(target)
    address = address.split("%", 1)[0]
    host = f"[{address}]" if ":" in address else address
    if parts.port is not None:
        host = f"{host}:{parts.port}"
    return urlunsplit(parts._replace(netloc=host))


class RequestRelay:
    """
    Runs one proxied request end to end:
    referrer gate -> target resolution -> loop guard -> DNS -> private
    network check -> outbound request -> transcoding -> response.

    Every failure ends in a single 400 response; nothing is retried.
    """

    def __init__(
        self,
        config: ProxyConfiguration,
        codec: Optional[UrlCodec] = None,
        transcoder: Optional[ResponseTranscoder] = None,
        resolver: Optional[Resolver] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.codec = codec or UrlCodec(config)
        if transcoder is None:
            css = CssRewriter(config, self.codec)
            transcoder = ResponseTranscoder(
                HtmlRewriter(config, self.codec, css_rewriter=css), css
            )
        self.transcoder = transcoder
        self.resolver = resolver or resolve_host
        self.own_authority = authority(urlsplit(config.public_url))
        self.transport = transport

    async def relay(self, request: Request) -> Response:
        request_url = str(request.url)
        with traced_request(tracer, "proxy_request", request.method, request_url) as span:
            try:
                return await self._relay(request, span)
            except ClassifiedRejection as e:
                logger.warning(f"[Proxy] Rejected {shorten(request_url)}: {e.reason or e}")
                span.set_attribute("proxy.rejection", e.kind)
                return self.error_response(e)
            except Exception as e:
                failure = (
                    e if isinstance(e, UnexpectedFailure) else UnexpectedFailure(e, request_url)
                )
                log_exception_with_details(
                    logger, "[Proxy] Failed to proxy url.", failure, request_url=request_url
                )
                span.set_attribute("proxy.error", format_exception_message(failure))
                return self.error_response(failure)

    @staticmethod
    def error_response(error: ProxyError) -> Response:
        # built from scratch, nothing of a partially prepared response survives
        return PlainTextResponse(error.public_message, status_code=error.status_code)

    async def _relay(self, request: Request, span) -> Response:
        referer = request.headers.get("referer")
        self.validate_referrer(referer)

        target = self.resolve_target(inbound_path_and_query(request), referer)
        span.set_attribute("proxy.target_url", shorten(target))
        self.check_loop(target)

        try:
            parts = urlsplit(target)
            scheme, host = parts.scheme, authority(parts)
        except ValueError as e:
            raise UnexpectedFailure(e, str(request.url)) from e

        addresses = await self.check_address(parts.hostname)

        # only IPv4 answers were range checked, so connect to one of those
        address = next((a for a in addresses if ":" not in a), addresses[0])
        client, upstream = await self.send(request, target, address)
        streaming = False
        try:
            span.set_attribute("proxy.status_code", upstream.status_code)
            plan = self.transcoder.plan(upstream.headers)

            if plan.rewrite:
                body = await upstream.aread()
                response = Response(
                    self.transcoder.transcode(body, plan, scheme, host),
                    status_code=upstream.status_code,
                )
            else:
                response = StreamingResponse(
                    self._passthrough(client, upstream, plan),
                    status_code=upstream.status_code,
                )
                streaming = True

            for name, value in self.response_headers(upstream, plan, scheme, host):
                response.headers.append(name, value)
            return response
        finally:
            if not streaming:
                await upstream.aclose()
                await client.aclose()

    def validate_referrer(self, referer: Optional[str]) -> None:
        """Only pages inside the translation frame, or already proxied pages, may use the proxy."""
        if not self.config.enforce_guards:
            return
        if not referer:
            raise ClassifiedRejection(
                ClassifiedRejection.FORBIDDEN,
                "Referrer not provided. Make sure the proxy is used from an iframe",
            )
        allowed = any(referer.startswith(prefix) for prefix in self.config.allowed_referrers)
        if not allowed and not self._is_self_referrer(referer):
            raise ClassifiedRejection(
                ClassifiedRejection.FORBIDDEN,
                f"Invalid referrer: {referer!r}, check ALLOWED_REFERRERS",
            )

    def _is_self_referrer(self, referer: str) -> bool:
        public_url = self.config.public_url
        if not referer.startswith(public_url):
            return False
        # https://proxy.example.com must not admit https://proxy.example.com.evil.net
        return referer[len(public_url):len(public_url) + 1] in ("", "/", "?", "#")

    def resolve_target(self, path_and_query: str, referer: Optional[str]) -> str:
        """
        Real URL for the inbound request.

        Falls back to the referring page's origin when the request path is
        not a proxy URL (a mirrored page redirected to a root-relative path).
        """
        target = self.codec.decode(path_and_query)
        if target is not None:
            return target

        logger.warning(f"[Proxy] Url is not proxied, rewriting to referrer: {shorten(path_and_query)}")
        origin = self.codec.decode(referer) or referer
        if origin:
            try:
                parts = urlsplit(origin)
                if parts.scheme in ("http", "https"):
                    return f"{parts.scheme}://{authority(parts)}{path_and_query}"
            except ValueError as e:
                logger.debug(f"[Proxy] Unusable referrer {referer!r}: {e}")
        raise ClassifiedRejection(
            ClassifiedRejection.MISSING_TARGET,
            f"No target for {path_and_query!r} and no usable referrer {referer!r}",
        )

    def check_loop(self, target: str) -> None:
        """Reject targets that would make the proxy request its own routes."""
        parts = urlsplit(target)
        prefix = self.config.proxy_prefix
        if len(prefix) > 1 and parts.path.startswith(prefix):
            raise ClassifiedRejection(ClassifiedRejection.LOOP, f"Proxy loading itself: {target}")
        try:
            host = authority(parts)
        except ValueError:
            return
        # a Referer of exactly PublicUrl resolves root-relative paths onto the proxy
        if host == self.own_authority:
            raise ClassifiedRejection(ClassifiedRejection.LOOP, f"Proxy loading itself: {target}")

    async def check_address(self, hostname: str) -> List[str]:
        try:
            addresses = list(await self.resolver(hostname))
        except OSError as e:
            log_exception_with_details(logger, f"[Proxy] Bad hostname: {hostname}.", e)
            raise ClassifiedRejection(
                ClassifiedRejection.BAD_ADDRESS, f"Failed to resolve {hostname}"
            ) from e
        if not addresses:
            raise ClassifiedRejection(
                ClassifiedRejection.BAD_ADDRESS, f"No addresses for {hostname}"
            )
        if self.config.enforce_guards and is_private(addresses):
            raise ClassifiedRejection(
                ClassifiedRejection.PRIVATE_NETWORK,
                f"Forbid private network access: {hostname} -> {addresses}",
            )
        return addresses

    def outbound_headers(self, request: Request) -> Dict[str, str]:
        """Allow-listed inbound headers, plus Content-Type and Referer translated for the origin."""
        headers: Dict[str, str] = {}
        for name in FORWARDED_REQUEST_HEADERS:
            value = request.headers.get(name)
            if value is None:
                continue
            if name == "accept-encoding":
                value = filter_accept_encoding(value)
                if not value:
                    continue
            headers[name] = value

        referer = request.headers.get("referer")
        if referer and self.config.proxy_prefix.lower() in referer.lower():
            referer = self.codec.decode(referer)
        if referer:
            headers["referer"] = referer

        if self._has_body(request):
            content_type = outbound_content_type(request.headers.get("content-type"))
            if content_type:
                headers["content-type"] = content_type
            if request.headers.get("content-length"):
                headers["content-length"] = request.headers["content-length"]
        return headers

    @staticmethod
    def _has_body(request: Request) -> bool:
        if request.headers.get("transfer-encoding"):
            return True
        length = (request.headers.get("content-length") or "").strip()
        return bool(length) and length != "0"

    async def send(
        self, request: Request, target: str, address: str
    ) -> Tuple[httpx.AsyncClient, httpx.Response]:
        """
        Send the outbound request and return once the response head arrives.

        The connection goes to ``address``, the IP that passed the private
        network check, so a second DNS answer cannot redirect it; Host and TLS
        SNI still name the target host. Redirects are not followed (the caller
        comes back through the proxy) and the per-request client's cookie jar
        is discarded with it.
        """
        parts = urlsplit(target)
        headers = self.outbound_headers(request)
        headers["host"] = authority(parts)
        extensions = {"sni_hostname": parts.hostname} if parts.scheme == "https" else {}
        client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.timeout),
            follow_redirects=False,
            transport=self.transport,
        )
        for name in _CLIENT_DEFAULT_HEADERS:
            client.headers.pop(name, None)
        try:
            outbound = client.build_request(
                request.method,
                pinned_url(target, address),
                headers=headers,
                content=request.stream() if self._has_body(request) else None,
                extensions=extensions,
            )
            upstream = await client.send(outbound, stream=True)
        except BaseException:
            await client.aclose()
            raise
        return client, upstream

    def response_headers(
        self, upstream: httpx.Response, plan: TranscodePlan, scheme: str, host: str
    ) -> List[Tuple[str, str]]:
        headers = [
            ("location", self.codec.encode(location, scheme, host))
            for location in upstream.headers.get_list("location")
        ]
        for name in MIRRORED_RESPONSE_HEADERS:
            headers.extend((name, value) for value in upstream.headers.get_list(name))
        content_type = upstream.headers.get("content-type")
        if content_type:
            headers.append(("content-type", content_type))
        if plan.keep_encoding:
            headers.append(("content-encoding", upstream.headers["content-encoding"]))
        return headers

    @staticmethod
    async def _passthrough(
        client: httpx.AsyncClient, upstream: httpx.Response, plan: TranscodePlan
    ) -> AsyncIterator[bytes]:
        chunks = upstream.aiter_raw() if plan.keep_encoding else upstream.aiter_bytes()
        try:
            async for chunk in chunks:
                yield chunk
        finally:
            await upstream.aclose()
            await client.aclose()
