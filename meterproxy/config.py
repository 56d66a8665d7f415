import os

DEFAULT_DB_URL = "sqlite:///./meterproxy.db"

DATABASE_URL = os.getenv("DATABASE_URL", DEFAULT_DB_URL)

# Empty disables the rate limiter and the redis health check.
REDIS_URL = os.getenv("REDIS_URL", "")

UPSTREAM_TIMEOUT_SECONDS = float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "30"))
UPSTREAM_MAX_CONNECTIONS = int(os.getenv("UPSTREAM_MAX_CONNECTIONS", "200"))
UPSTREAM_MAX_KEEPALIVE = int(os.getenv("UPSTREAM_MAX_KEEPALIVE", "50"))

PROXY_ROUTE_MARKER = os.getenv("PROXY_ROUTE_MARKER", "proxy-service")
PROXY_PUBLIC_BASE = os.getenv("PROXY_PUBLIC_BASE", "").rstrip("/")
PROXY_DEFAULT_USER_AGENT = os.getenv(
    "PROXY_DEFAULT_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)
PROXY_SCRIPT_BRIDGE = os.getenv("PROXY_SCRIPT_BRIDGE", "1").lower() in ("1", "true", "yes")

CORS_ALLOW_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ALLOW_ORIGINS", "http://localhost:5173,http://localhost:4173").split(",")
    if o.strip()
]

RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE", "120"))
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
