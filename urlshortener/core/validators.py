"""
Input Validators

Checks applied to caller input before it reaches the alias codec or the
row store. Each validator returns the reason the input was rejected (or
None when the input is acceptable) so the service layer can turn it into a
client error with a precise message.
"""

from typing import Optional
from urllib.parse import urlsplit

ALLOWED_SCHEMES = frozenset({"http", "https"})
MAX_URL_LENGTH = 2048  # RFC 7230 practical limit


def validate_url_length(url: str, max_length: int = MAX_URL_LENGTH) -> bool:
    """
    Validate URL length.

    Args:
        url: The URL to validate
        max_length: Maximum allowed length (default: 2048)

    Returns:
        True if URL length is valid, False otherwise
    """
    return bool(url) and len(url) <= max_length


def validate_url(url: Optional[str]) -> Optional[str]:
    """
    Validate a URL submitted for shortening.

    The URL must parse as an absolute URI (it has a scheme), the scheme must
    be http or https, and it must name a host.

    Args:
        url: The URL string to validate

    Returns:
        None if the URL is acceptable, otherwise the rejection message
    """
    if not isinstance(url, str) or not url.strip():
        return f"Invalid URL '{url}'"

    if not validate_url_length(url):
        return f"Invalid URL: longer than {MAX_URL_LENGTH} characters"

    try:
        parts = urlsplit(url)
    except ValueError:
        return f"Invalid URL '{url}'"

    if not parts.scheme:
        return f"Invalid URL '{url}'"

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        return f"Submitted URL must use http(s) scheme. Found: '{url}'"

    try:
        hostname = parts.hostname
    except ValueError:
        hostname = None
    if not hostname:
        return f"Invalid URL '{url}'"

    return None


def sanitize_token(token: Optional[str]) -> Optional[str]:
    """
    Normalize a url-safe token taken from a request path.

    Returns:
        The stripped token, or None if it is missing or blank
    """
    if not isinstance(token, str):
        return None
    token = token.strip()
    return token or None
