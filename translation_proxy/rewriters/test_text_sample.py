from bs4 import BeautifulSoup

from translation_proxy.rewriters import extract_visible_text


def _soup(markup):
    return BeautifulSoup(markup, "html.parser")


def test_skips_code_like_elements():
    soup = _soup(
        "<p>visible</p><script>var hidden;</script><style>.x{}</style>"
        "<code>c</code><kbd>k</kbd><samp>s</samp><var>v</var>"
    )
    assert extract_visible_text(soup).strip() == "visible"


def test_whitespace_is_compressed():
    soup = _soup("<p>a\n\n   b</p><p>c</p>")
    assert extract_visible_text(soup) == " a b c "


def test_entities_are_decoded_once():
    soup = _soup("<p>Fish &amp; chips &amp;lt;b&amp;gt;</p>")
    assert extract_visible_text(soup) == " Fish & chips &lt;b&gt; "


def test_comments_are_skipped():
    soup = _soup("<p>x</p><!-- secret -->")
    assert "secret" not in extract_visible_text(soup)


def test_long_text_is_trimmed_top_and_bottom():
    words = " ".join(f"w{i:03d}" for i in range(200))
    text = extract_visible_text(_soup(f"<p>{words}</p>"))
    assert "w000" not in text
    assert "w199" not in text
    assert "w100" in text


def test_limit_caps_collection():
    words = " ".join("word" for _ in range(5000))
    text = extract_visible_text(_soup(f"<p>{words}</p><p>tail</p>"), limit=1000)
    assert "tail" not in text
    assert len(text) <= 1000
