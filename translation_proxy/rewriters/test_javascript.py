from translation_proxy.codec import UrlCodec
from translation_proxy.config import ProxyConfiguration
from translation_proxy.rewriters import JsRewriter

PUBLIC_URL = "https://proxy.example.com"

js = JsRewriter(UrlCodec(ProxyConfiguration(public_url=PUBLIC_URL)))


def test_quoted_absolute_urls_are_rewritten():
    source = "var a = \"http://api.site.com/v1\"; var b = 'https://cdn.net/x.js';"
    result = js.rewrite(source, "https", "site.com")
    assert f'"{PUBLIC_URL}/proxy/http/api.site.com/v1"' in result
    assert f"'{PUBLIC_URL}/proxy/https/cdn.net/x.js'" in result


def test_root_relative_strings_are_left_alone():
    source = "fetch('/api/items'); var tpl = \"/templates/a.html\";"
    assert js.rewrite(source, "https", "site.com") == source


def test_location_href_assignment_is_rewritten():
    source = "if (x) {\n    window.location.href = '/login?next=1';\n}"
    result = js.rewrite(source, "https", "site.com")
    assert f"window.location.href = '{PUBLIC_URL}/proxy/https/site.com/login?next=1';" in result


def test_location_href_in_event_handler_value():
    result = js.rewrite("window.location.href='/home'", "https", "site.com")
    assert result == f"window.location.href='{PUBLIC_URL}/proxy/https/site.com/home'"


def test_mismatched_quotes_are_not_joined():
    source = "a = \"http://x.com/a'; b = 'c\";"
    assert js.rewrite(source, "https", "site.com") == source


def test_rest_of_line_after_redirect_is_untouched():
    source = "\nwindow.location.href = \"/a\"; track('b');"
    result = js.rewrite(source, "https", "site.com")
    assert result.endswith("; track('b');")
