import logging

from fastapi import APIRouter, Request

from translation_proxy.proxy.relay import RequestRelay

logger = logging.getLogger("uvicorn.error")

PROXY_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


def build_router(relay: RequestRelay) -> APIRouter:
    """
    Routes for ``{proxy_prefix}{scheme}/{domain}/{path...}``.

    A final catch-all sends any other path to the relay as well, which then
    resolves it against the Referer (a mirrored page redirecting to a
    root-relative path). Register this router after every other route.
    """
    router = APIRouter()
    prefix = relay.config.proxy_prefix

    async def proxy_all(request: Request):
        """Catch-all route that relays the request to the mirrored site."""
        return await relay.relay(request)

    for path in (
        prefix + "{scheme}/{domain}/{path:path}",
        prefix + "{scheme}/{domain}",
        "/{path:path}",
    ):
        router.add_api_route(
            path, proxy_all, methods=PROXY_METHODS, include_in_schema=False
        )

    logger.info(f"Proxy routes mounted under {prefix}")
    return router
