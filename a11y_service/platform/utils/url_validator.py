from typing import Tuple
from urllib.parse import urlparse


def normalize_url(url: str) -> str:
    """Strip whitespace and default a missing scheme to https."""
    url = url.strip()
    if not urlparse(url).scheme:
        return f"https://{url}"
    return url


def validate_url(url: str) -> Tuple[bool, str, str]:
    """Return (is_valid, normalized_url, error_message) for a page URL."""
    if not url or not url.strip():
        return False, "", "URL cannot be empty"

    normalized_url = normalize_url(url)

    try:
        parsed = urlparse(normalized_url)
    except ValueError as e:
        return False, normalized_url, f"URL parsing error: {str(e)}"

    if not parsed.netloc:
        return False, normalized_url, "Invalid URL format: missing domain"
    if parsed.scheme not in ("http", "https"):
        return False, normalized_url, f"Invalid URL scheme: {parsed.scheme} (must be http or https)"
    return True, normalized_url, ""


def sitemap_url_for(url: str) -> str:
    """Rebuild `{scheme}://{host}/sitemap.xml` from any URL on the site."""
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}/sitemap.xml"
