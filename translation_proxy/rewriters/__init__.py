from .css import CssRewriter
from .html import DEFAULT_PARSE_PROFILE, HtmlRewriter, ParseProfile
from .javascript import JsRewriter
from .text_sample import extract_visible_text

__all__ = [
    "CssRewriter",
    "DEFAULT_PARSE_PROFILE",
    "HtmlRewriter",
    "JsRewriter",
    "ParseProfile",
    "extract_visible_text",
]
