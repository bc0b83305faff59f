"""Link helpers for contributed books and people."""
import re
from typing import Optional
from urllib.parse import urlparse

_USERNAME_RE = re.compile(r"^@?[a-zA-Z0-9_]+$")
_PROFILE_RE = re.compile(r"(?:twitter\.com|x\.com)/([a-zA-Z0-9_]+)", re.IGNORECASE)


def generate_amazon_url(title: str, author: str) -> str:
    """Amazon book search link for title + author."""
    query = re.sub(r"[^a-zA-Z0-9 ]", "", f"{title} {author}")
    query = re.sub(r"\s+", "+", query.strip())
    return f"https://www.amazon.com/s?k={query}&i=stripbooks"


def sanitize_twitter_url(url: Optional[str]) -> Optional[str]:
    """
    Normalize Twitter/X profile links (full URLs or twitter.com/handle)
    to https://x.com/<handle>. Other URLs pass through unchanged.
    """
    if not url:
        return None
    url = url.strip()

    lowered = url.lower()
    if "twitter.com" not in lowered and "x.com" not in lowered:
        return url

    if url.startswith("http"):
        try:
            parts = [p for p in urlparse(url).path.split("/") if p]
        except ValueError:
            return url
        if parts:
            return f"https://x.com/{parts[0]}"

    if _USERNAME_RE.match(url):
        return f"https://x.com/{url.lstrip('@')}"

    match = _PROFILE_RE.search(url)
    if match:
        return f"https://x.com/{match.group(1)}"
    return url
