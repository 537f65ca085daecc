"""Content-delivery URLs for audio files, with optional expiry times."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional
from urllib.parse import parse_qsl, urlsplit

log = logging.getLogger(__name__)

_EXPIRY_MARGIN_SECONDS = 5 * 60


class CdnUrlError(Exception):
    """Raised when no usable CDN URL is available."""

    EXPIRED = "all URLs expired"
    STORAGE = "resolved storage is not for CDN"
    UNRESOLVED = "no URLs resolved"


@dataclass(frozen=True)
class MaybeExpiringUrl:
    """A URL together with the moment it stops being valid, if any."""

    url: str
    expiry: Optional[datetime] = None


def _expiry_string(cdn_url: str) -> str:
    parts = urlsplit(cdn_url)
    token = next(
        (value for key, value in parse_qsl(parts.query, keep_blank_values=True)
         if key == "__token__"),
        None,
    )
    if token is not None:
        start = token.find("exp=")
        if start < 0:
            return ""
        # the only valid form for tokenised URLs: exp=<seconds>~...
        return token[start + 4:].split("~", 1)[0]
    if parts.query:
        # the only valid form for plain query URLs: <seconds>_...
        return parts.query.split("_", 1)[0]
    return ""


def _parse_expiry(cdn_url: str) -> datetime:
    text = _expiry_string(cdn_url)
    try:
        expiry = int(text)
    except ValueError:
        raise ValueError(f"invalid expiry {text!r} in URL {cdn_url!r}") from None
    expiry -= _EXPIRY_MARGIN_SECONDS
    try:
        return datetime.fromtimestamp(expiry, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise ValueError(f"expiry {expiry} out of range in URL {cdn_url!r}") from None


def resolve_urls(
    cdn_urls: Iterable[str], is_cdn: bool, is_expiring: bool
) -> list[MaybeExpiringUrl]:
    """Turn a storage-resolve answer into URLs with expiry times.

    ``is_cdn`` tells whether the storage was resolved to a CDN; ``is_expiring``
    whether the URLs carry an expiry time (the answer named file ids).
    """
    if not is_cdn:
        raise CdnUrlError(CdnUrlError.STORAGE)
    if not is_expiring:
        return [MaybeExpiringUrl(url) for url in cdn_urls]
    return [MaybeExpiringUrl(url, _parse_expiry(url)) for url in cdn_urls]


class CdnUrl:
    """The CDN locations of one audio file."""

    def __init__(
        self, file_id: bytes, urls: Optional[Iterable[MaybeExpiringUrl]] = None
    ) -> None:
        self.file_id = bytes(file_id)
        self.urls: list[MaybeExpiringUrl] = list(urls or ())

    def __repr__(self) -> str:
        return f"CdnUrl(file_id={self.file_id.hex()!r}, urls={self.urls!r})"

    def try_get_url(self) -> str:
        """Return the first URL that has not expired yet."""
        if not self.urls:
            raise CdnUrlError(CdnUrlError.UNRESOLVED)
        now = datetime.now(timezone.utc)
        for candidate in self.urls:
            if candidate.expiry is None or now < candidate.expiry:
                return candidate.url
        raise CdnUrlError(CdnUrlError.EXPIRED)