"""
Extraction of links that point outside the allowed domains.
"""

from __future__ import annotations

import re
from typing import Iterable, List
from urllib.parse import urlsplit

URL_PATTERN = re.compile(r"https?://\S+|www\.\S+", re.IGNORECASE)


class LinkExtractor:
    """Finds URL-like tokens and drops those whose host is allow-listed.

    Tokens that cannot be parsed, or parse to an empty host, are kept: a
    parsing failure must never let a link through.
    """

    def __init__(self, allowed_domains: Iterable[str]) -> None:
        self.allowed_domains = frozenset(_strip_www(domain.strip().lower()) for domain in allowed_domains)

    def extract_disallowed_links(self, text: str) -> List[str]:
        """Return disallowed links in first-seen order (duplicates kept)."""
        if not text:
            return []
        return [link for link in URL_PATTERN.findall(text) if not self.is_allowed(link)]

    def is_allowed(self, link: str) -> bool:
        host = hostname_of(link)
        return host is not None and host in self.allowed_domains


def hostname_of(link: str) -> str | None:
    """Return the lower-cased hostname without a leading ``www.``, or None if unparsable."""
    candidate = link if link.lower().startswith("http") else f"http://{link}"
    try:
        host = urlsplit(candidate).hostname
    except ValueError:
        return None
    if not host:
        return None
    return _strip_www(host)


def _strip_www(host: str) -> str:
    return host[4:] if host.startswith("www.") else host
