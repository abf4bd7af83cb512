"""Header redaction for request logging.

Cookie headers keep their cookie names so a log line still shows which
session cookies were sent; only the values are masked.
"""

SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "proxy-authorization",
        "x-api-key",
        "set-cookie",
    }
)

COOKIE_HEADER = "cookie"

REDACTED_VALUE = "[REDACTED]"


def redact_cookie_value(value: str) -> str:
    """Mask every cookie value in a Cookie header, keeping the names.

    >>> redact_cookie_value("a=1; b=2")
    'a=[REDACTED]; b=[REDACTED]'
    """
    parts = []
    for pair in value.split(";"):
        name, sep, _ = pair.strip().partition("=")
        if not name:
            continue
        parts.append(f"{name}={REDACTED_VALUE}" if sep else REDACTED_VALUE)
    return "; ".join(parts)


def redact_headers(headers: dict[str, str]) -> dict[str, str]:
    """Return a copy of headers that is safe to log."""
    redacted: dict[str, str] = {}
    for key, value in headers.items():
        lowered = key.lower()
        if lowered == COOKIE_HEADER:
            redacted[key] = redact_cookie_value(value)
        elif lowered in SENSITIVE_HEADERS:
            redacted[key] = REDACTED_VALUE
        else:
            redacted[key] = value
    return redacted
