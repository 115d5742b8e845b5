"""Domain normalization utilities."""

from __future__ import annotations

from urllib.parse import urlparse

import idna
import tldextract

from ..errors import InvalidUrlError

# Offline extractor: use the bundled public suffix snapshot, never fetch it.
_extract = tldextract.TLDExtract(suffix_list_urls=())


def extract_domain(url: str) -> str:
    """
    Return the lowercase hostname of an absolute URL.

    - Requires a scheme and a host (``example.com`` alone is rejected)
    - Strips a trailing dot
    - Keeps ``www.`` and punycode labels as given

    Raises:
        InvalidUrlError: if the URL cannot be parsed or has no host.
    """
    raw = (url or "").strip()
    if not raw:
        raise InvalidUrlError(url)
    try:
        parsed = urlparse(raw)
        host = parsed.hostname
        # Accessing .port validates it (raises ValueError when out of range).
        _ = parsed.port
    except ValueError as exc:
        raise InvalidUrlError(url) from exc
    if not parsed.scheme or not host:
        raise InvalidUrlError(url)
    host = host.strip().lower().rstrip(".")
    if not host:
        raise InvalidUrlError(url)
    return host


def normalize_domain(value: str) -> str:
    """
    Normalize a domain or URL given by a user or a feed.

    Accepts bare hosts (``Example.COM.``) and URLs; returns "" when nothing
    usable remains.
    """
    raw = (value or "").strip()
    if not raw:
        return ""
    candidate = raw if "://" in raw else f"https://{raw}"
    try:
        host = urlparse(candidate).hostname
    except ValueError:
        return ""
    host = (host or "").strip().lower().rstrip(".")
    if not host or any(ch.isspace() for ch in host):
        return ""
    return host


def decode_punycode(domain: str) -> str:
    """Best-effort decode of ``xn--`` labels to Unicode."""
    if "xn--" not in domain:
        return domain
    labels = []
    for label in domain.split("."):
        if label.startswith("xn--"):
            try:
                label = idna.decode(label)
            except (idna.IDNAError, UnicodeError):
                pass
        labels.append(label)
    return ".".join(labels)


def registered_domain(value: str) -> str:
    """Return the registrable domain for a host (best-effort)."""
    host = normalize_domain(value)
    if not host:
        return ""
    extracted = _extract(host)
    if extracted.domain and extracted.suffix:
        return f"{extracted.domain}.{extracted.suffix}".lower()
    return host
