import importlib

import pytest

from translation_proxy.config import ProxyConfiguration


@pytest.fixture
def reload_vars():
    import translation_proxy.vars as vars_module

    yield lambda: importlib.reload(vars_module)
    # environment is restored by monkeypatch first, then the defaults are re-read
    importlib.reload(vars_module)


def test_trailing_slash_is_dropped():
    config = ProxyConfiguration(public_url="https://proxy.example.com/")
    assert config.public_url == "https://proxy.example.com"


def test_defaults():
    config = ProxyConfiguration(public_url="http://localhost:8000")
    assert config.proxy_prefix == "/proxy/"
    assert config.proxy_static_assets is True
    assert config.allowed_referrers == ()
    assert config.enforce_guards is True
    assert config.timeout == 30.0
    assert config.frame_target == "letsmtTranslatePageIframe"


@pytest.mark.parametrize("public_url", ["", "proxy.example.com", "ftp://proxy.example.com"])
def test_public_url_must_be_absolute_http(public_url):
    with pytest.raises(ValueError):
        ProxyConfiguration(public_url=public_url)


@pytest.mark.parametrize("prefix", ["", "proxy/", "/proxy", "proxy"])
def test_prefix_must_be_slash_delimited(prefix):
    with pytest.raises(ValueError):
        ProxyConfiguration(public_url="https://proxy.example.com", proxy_prefix=prefix)


def test_referrers_become_a_tuple():
    config = ProxyConfiguration(
        public_url="https://proxy.example.com", allowed_referrers=["https://a/", "https://b/"]
    )
    assert config.allowed_referrers == ("https://a/", "https://b/")


def test_from_env(monkeypatch, reload_vars):
    monkeypatch.setenv("PUBLIC_URL", "https://translate-proxy.example.org/")
    monkeypatch.setenv("PROXY_PREFIX", "/p/")
    monkeypatch.setenv("PROXY_STATIC_ASSETS", "False")
    monkeypatch.setenv("ALLOWED_REFERRERS", "https://a.example.com/, https://b.example.com/,")
    monkeypatch.setenv("PROXY_TIMEOUT", "12.5")
    monkeypatch.setenv("PROXY_FRAME_TARGET", "viewer")
    reload_vars()

    config = ProxyConfiguration.from_env()

    assert config.public_url == "https://translate-proxy.example.org"
    assert config.proxy_prefix == "/p/"
    assert config.proxy_static_assets is False
    assert config.allowed_referrers == ("https://a.example.com/", "https://b.example.com/")
    assert config.enforce_guards is True
    assert config.timeout == 12.5
    assert config.frame_target == "viewer"


def test_from_env_guards_switch(monkeypatch, reload_vars):
    monkeypatch.setenv("PROXY_ENFORCE_GUARDS", "false")
    reload_vars()
    assert ProxyConfiguration.from_env().enforce_guards is False
