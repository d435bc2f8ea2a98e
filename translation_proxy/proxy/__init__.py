from .relay import RequestRelay, inbound_path_and_query, pinned_url
from .route import build_router
from .transcoder import ResponseTranscoder, TranscodePlan

__all__ = [
    "RequestRelay",
    "ResponseTranscoder",
    "TranscodePlan",
    "build_router",
    "inbound_path_and_query",
    "pinned_url",
]
