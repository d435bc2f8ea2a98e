import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "translation-proxy")

PUBLIC_URL = os.environ.get("PUBLIC_URL", "http://localhost:8000")
PROXY_PREFIX = os.environ.get("PROXY_PREFIX", "/proxy/")
PROXY_STATIC_ASSETS = os.environ.get("PROXY_STATIC_ASSETS", "true").lower() == "true"
ALLOWED_REFERRERS = [
    r.strip() for r in os.environ.get("ALLOWED_REFERRERS", "").split(",") if r.strip()
]
# Referrer gate and private network check; only switch off for local testing
PROXY_ENFORCE_GUARDS = (
    os.environ.get("PROXY_ENFORCE_GUARDS", "true").lower() == "true"
)
PROXY_TIMEOUT = float(os.environ.get("PROXY_TIMEOUT", "30"))
PROXY_FRAME_TARGET = os.environ.get("PROXY_FRAME_TARGET", "letsmtTranslatePageIframe")

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
