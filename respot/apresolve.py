"""Resolution of service endpoints to host and port pairs."""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Union

log = logging.getLogger(__name__)

SocketAddress = tuple[str, int]
FetchFunction = Callable[[], Awaitable[Union[str, bytes, Mapping[str, Any]]]]

_ENDPOINTS = ("accesspoint", "dealer", "spclient")


class ApResolveError(Exception):
    """Raised when an endpoint cannot be resolved."""


@dataclass
class ApResolveData:
    """Endpoint addresses as ``host:port`` strings."""

    accesspoint: list[str] = field(default_factory=list)
    dealer: list[str] = field(default_factory=list)
    spclient: list[str] = field(default_factory=list)

    @classmethod
    def fallback(cls) -> ApResolveData:
        """Addresses to use when resolution fails or comes back incomplete."""
        return cls(
            accesspoint=["ap.spotify.com:443"],
            dealer=["dealer.spotify.com:443"],
            spclient=["spclient.wg.spotify.com:443"],
        )

    @classmethod
    def from_json(cls, data: Union[str, bytes, Mapping[str, Any]]) -> ApResolveData:
        """Build from a JSON document (or an already decoded mapping)."""
        if isinstance(data, (str, bytes, bytearray)):
            try:
                data = json.loads(data)
            except ValueError as exc:
                raise ApResolveError(f"invalid resolve data: {exc}") from None
        if not isinstance(data, Mapping):
            raise ApResolveError("resolve data must be an object")
        lists = {}
        for name in _ENDPOINTS:
            if name not in data:
                raise ApResolveError(f"missing field `{name}`")
            value = data[name]
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ApResolveError(f"field `{name}` must be a list of strings")
            lists[name] = list(value)
        return cls(**lists)


@dataclass
class AccessPoints:
    accesspoint: deque = field(default_factory=deque)
    dealer: deque = field(default_factory=deque)
    spclient: deque = field(default_factory=deque)

    def is_any_empty(self) -> bool:
        return not self.accesspoint or not self.dealer or not self.spclient


def _parse_port(text: str) -> Optional[int]:
    digits = text[1:] if text.startswith("+") else text
    if not digits or not digits.isascii() or not digits.isdigit():
        return None
    port = int(digits)
    return port if port <= 0xFFFF else None


def process_ap_strings(
    data: Iterable[str], filter_port: Optional[int]
) -> deque:
    """Parse ``host:port`` strings, dropping malformed ones and other ports."""
    result: deque = deque()
    for address in data:
        host, sep, port_text = address.rpartition(":")
        if not sep:
            continue
        port = _parse_port(port_text)
        if port is None:
            continue
        if filter_port is not None and filter_port != port:
            continue
        result.append((host, port))
    return result


class ApResolver:
    """Hands out endpoint addresses, fetching fresh ones when any kind runs out.

    ``fetch`` is an async callable returning the resolve document; without it
    resolution always falls back to the built-in addresses.
    """

    def __init__(
        self,
        proxy: Optional[str] = None,
        ap_port: Optional[int] = None,
        fetch: Optional[FetchFunction] = None,
    ) -> None:
        self.proxy = proxy
        self.ap_port = ap_port
        self._fetch = fetch
        self._data = AccessPoints()

    def port_config(self) -> Optional[int]:
        """The only port to accept, if a proxy or a port was configured."""
        if self.proxy is not None or self.ap_port is not None:
            return self.ap_port if self.ap_port is not None else 443
        return None

    def _to_access_points(self, resolve: ApResolveData) -> AccessPoints:
        port = self.port_config()
        return AccessPoints(
            accesspoint=process_ap_strings(resolve.accesspoint, port),
            dealer=process_ap_strings(resolve.dealer, port),
            spclient=process_ap_strings(resolve.spclient, port),
        )

    async def _try_apresolve(self) -> ApResolveData:
        if self._fetch is None:
            raise ApResolveError("no resolve source configured")
        return ApResolveData.from_json(await self._fetch())

    async def _apresolve(self) -> None:
        error: Optional[BaseException] = None
        try:
            data = await self._try_apresolve()
        except Exception as exc:  # any failure means falling back
            data, error = ApResolveData(), exc

        self._data = self._to_access_points(data)
        if self._data.is_any_empty():
            log.warning("Failed to resolve all access points, using fallbacks")
            if error is not None:
                log.warning("Resolve access points error: %s", error)
            fallback = self._to_access_points(ApResolveData.fallback())
            self._data.accesspoint.extend(fallback.accesspoint)
            self._data.dealer.extend(fallback.dealer)
            self._data.spclient.extend(fallback.spclient)

    async def resolve(self, endpoint: str) -> SocketAddress:
        """Take the most preferred address for ``endpoint``."""
        if self._data.is_any_empty():
            await self._apresolve()
        if endpoint not in _ENDPOINTS:
            raise ApResolveError(f"No implementation to resolve access point {endpoint}")
        queue: deque = getattr(self._data, endpoint)
        if not queue:
            raise ApResolveError(f"No access point available for endpoint {endpoint}")
        return queue.popleft()