from __future__ import annotations

import re
from urllib.parse import parse_qsl, urlencode, urlparse, urlsplit, urlunsplit

from bs4 import BeautifulSoup


def canonical_url(url: str) -> str:
    parsed = urlsplit(url.strip())
    scheme = (parsed.scheme or "https").lower()
    netloc = parsed.netloc.lower()
    path = parsed.path.rstrip("/") or "/"
    query = urlencode(sorted(parse_qsl(parsed.query, keep_blank_values=True)))
    return urlunsplit((scheme, netloc, path, query, ""))


def extract_domain(url: str) -> str:
    """Host without a leading www., used as the rate-limit key."""
    host = (urlparse(url).hostname or "").lower().strip()
    if host.startswith("www."):
        host = host[4:]
    return host


ERROR_CONTAINER_SELECTOR = (
    '[class*="404"], [id*="404"], [class*="not-found"], [id*="not-found"], '
    '[class*="notfound"], [id*="notfound"], [class*="error-page"]'
)


def headline_text(html: str) -> str:
    """Title, top-level headings and error containers; body copy and comments are left out."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    parts = [tag.get_text(" ") for tag in soup.find_all(["title", "h1", "h2"])]
    parts.extend(tag.get_text(" ") for tag in soup.select(ERROR_CONTAINER_SELECTOR))
    return re.sub(r"\s+", " ", " ".join(parts)).strip().lower()
