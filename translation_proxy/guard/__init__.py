from .ssrf import PRIVATE_RANGES, is_private, resolve_host

__all__ = ["PRIVATE_RANGES", "is_private", "resolve_host"]
