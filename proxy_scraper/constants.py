"""Outbound HTTP defaults and persisted key names."""

DEFAULT_MAX_REDIRECTS = 5

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate",
    "Upgrade-Insecure-Requests": "1",
}

# Inclusive range of status codes treated as a successful scrape
SUCCESS_STATUS_MIN = 200
SUCCESS_STATUS_MAX = 399

# Persisted store keys
ACTIVE_PROXIES_KEY = "proxies:active"
FAILED_PROXIES_KEY = "proxies:failed"
RATE_LIMIT_KEY_PREFIX = "rate_limit"
