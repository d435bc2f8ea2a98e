from .url_codec import UrlCodec, authority

__all__ = ["UrlCodec", "authority"]
