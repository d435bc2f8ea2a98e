import codecs

import httpx
import pytest

from translation_proxy.codec import UrlCodec
from translation_proxy.proxy.transcoder import ResponseTranscoder, TranscodePlan
from translation_proxy.rewriters import CssRewriter, HtmlRewriter

PROXIED = "https://proxy.example.com/proxy/https/site.com"


@pytest.fixture
def transcoder(proxy_config):
    codec = UrlCodec(proxy_config)
    css = CssRewriter(proxy_config, codec)
    return ResponseTranscoder(HtmlRewriter(proxy_config, codec, css_rewriter=css), css)


def _plan(transcoder, **headers):
    return transcoder.plan(httpx.Headers({k.replace("_", "-"): v for k, v in headers.items()}))


class TestPlan:
    def test_html_is_rewritten(self, transcoder):
        plan = _plan(transcoder, content_type="text/html; charset=windows-1257")
        assert plan == TranscodePlan("text/html", "windows-1257", None)
        assert plan.rewrite

    def test_css_is_rewritten(self, transcoder):
        assert _plan(transcoder, content_type="Text/CSS").rewrite

    @pytest.mark.parametrize(
        "content_type", ["application/javascript", "image/png", "application/json", ""]
    )
    def test_other_types_pass_through(self, transcoder, content_type):
        plan = _plan(transcoder, content_type=content_type)
        assert not plan.rewrite
        assert not plan.keep_encoding

    @pytest.mark.parametrize("encoding", ["gzip", "deflate", "GZIP"])
    def test_gzip_and_deflate_are_decompressed(self, transcoder, encoding):
        plan = _plan(transcoder, content_type="text/html", content_encoding=encoding)
        assert plan.decompress
        assert not plan.keep_encoding
        assert plan.rewrite

    def test_other_encodings_are_relayed(self, transcoder):
        plan = _plan(transcoder, content_type="text/html", content_encoding="br")
        assert plan.keep_encoding
        assert not plan.rewrite

    def test_identity_is_no_encoding(self, transcoder):
        plan = _plan(transcoder, content_type="text/css", content_encoding="identity")
        assert plan.content_encoding is None
        assert plan.rewrite


class TestTranscode:
    def test_html_body(self, transcoder):
        plan = TranscodePlan("text/html", "utf-8", None)
        out = transcoder.transcode(b'<a href="/x">x</a>', plan, "https", "site.com")
        assert out == f'<a href="{PROXIED}/x">x</a>'.encode()

    def test_css_body(self, transcoder):
        plan = TranscodePlan("text/css", None, None)
        out = transcoder.transcode(b"a{background:url(/i.png)}", plan, "https", "site.com")
        assert out == f"a{{background:url({PROXIED}/i.png)}}".encode()

    def test_declared_charset_is_kept(self, transcoder):
        plan = TranscodePlan("text/html", "iso-8859-1", None)
        out = transcoder.transcode("<p>café</p>".encode("latin-1"), plan, "https", "site.com")
        assert out == "<p>café</p>".encode("latin-1")

    def test_unencodable_characters_become_references(self, transcoder):
        plan = TranscodePlan("text/html", "iso-8859-1", None)
        out = transcoder.transcode(b"<p>&#257;</p>", plan, "https", "site.com")
        assert out == b"<p>&#257;</p>"

    def test_unknown_charset_fails(self, transcoder):
        plan = TranscodePlan("text/html", "x-no-such-charset", None)
        with pytest.raises(LookupError):
            transcoder.transcode(b"<p></p>", plan, "https", "site.com")


class TestDecode:
    def test_byte_order_mark_wins(self, transcoder):
        plan = TranscodePlan("text/html", "iso-8859-1", None)
        text, encoding = transcoder.decode(codecs.BOM_UTF8 + "ā".encode(), plan)
        assert text == "ā"
        assert encoding == "utf-8"

    def test_utf16_byte_order_mark(self, transcoder):
        plan = TranscodePlan("text/css", None, None)
        text, encoding = transcoder.decode(codecs.BOM_UTF16_LE + "a{}".encode("utf-16-le"), plan)
        assert text == "a{}"
        assert encoding == codecs.lookup("utf-16-le").name

    def test_invalid_bytes_are_replaced(self, transcoder):
        plan = TranscodePlan("text/html", "utf-8", None)
        text, _ = transcoder.decode(b"a\xffb", plan)
        assert text == "a�b"
