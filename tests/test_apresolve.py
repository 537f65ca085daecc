import json
from collections import deque

import pytest

from respot.apresolve import (
    AccessPoints,
    ApResolveData,
    ApResolveError,
    ApResolver,
    process_ap_strings,
)

DOCUMENT = {
    "accesspoint": ["ap1.example.com:4070", "ap2.example.com:443"],
    "dealer": ["dealer.example.com:443"],
    "spclient": ["sp.example.com:443"],
}


def make_fetch(payload, calls):
    async def fetch():
        calls.append(1)
        return payload

    return fetch


def test_process_ap_strings_drops_malformed():
    result = process_ap_strings(
        ["a.example.com:4070", "b.example.com:443", "noport", "c.example.com:x", "d.example.com:70000"],
        None,
    )
    assert result == deque([("a.example.com", 4070), ("b.example.com", 443)])


def test_process_ap_strings_filters_port():
    result = process_ap_strings(["a.example.com:4070", "b.example.com:443"], 443)
    assert list(result) == [("b.example.com", 443)]


def test_process_ap_strings_splits_on_last_colon():
    assert list(process_ap_strings(["[::1]:443"], None)) == [("[::1]", 443)]


def test_from_json_and_missing_field():
    data = ApResolveData.from_json(json.dumps(DOCUMENT))
    assert data.accesspoint == DOCUMENT["accesspoint"]
    assert data.spclient == DOCUMENT["spclient"]
    with pytest.raises(ApResolveError):
        ApResolveData.from_json('{"accesspoint": [], "dealer": []}')


def test_fallback_values():
    fallback = ApResolveData.fallback()
    assert fallback.accesspoint == ["ap.spotify.com:443"]
    assert fallback.dealer == ["dealer.spotify.com:443"]
    assert fallback.spclient == ["spclient.wg.spotify.com:443"]


def test_access_points_is_any_empty():
    points = AccessPoints(deque([("a", 1)]), deque([("b", 2)]), deque())
    assert points.is_any_empty()
    points.spclient.append(("c", 3))
    assert not points.is_any_empty()


def test_port_config():
    assert ApResolver().port_config() is None
    assert ApResolver(proxy="http://proxy.example.com:8080").port_config() == 443
    assert ApResolver(ap_port=80).port_config() == 80


@pytest.mark.asyncio
async def test_resolve_pops_in_order_and_refetches():
    calls = []
    resolver = ApResolver(fetch=make_fetch(json.dumps(DOCUMENT), calls))
    assert await resolver.resolve("accesspoint") == ("ap1.example.com", 4070)
    assert await resolver.resolve("accesspoint") == ("ap2.example.com", 443)
    assert len(calls) == 1
    assert await resolver.resolve("dealer") == ("dealer.example.com", 443)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_resolve_falls_back_on_failure():
    async def failing():
        raise OSError("network down")

    resolver = ApResolver(fetch=failing)
    assert await resolver.resolve("accesspoint") == ("ap.spotify.com", 443)


@pytest.mark.asyncio
async def test_incomplete_data_gets_fallbacks_appended():
    document = dict(DOCUMENT, dealer=[])
    resolver = ApResolver(fetch=make_fetch(document, []))
    assert await resolver.resolve("dealer") == ("dealer.spotify.com", 443)
    assert await resolver.resolve("accesspoint") == ("ap1.example.com", 4070)


@pytest.mark.asyncio
async def test_unknown_endpoint():
    resolver = ApResolver(fetch=make_fetch(DOCUMENT, []))
    with pytest.raises(ApResolveError, match="No implementation"):
        await resolver.resolve("nowhere")


@pytest.mark.asyncio
async def test_filtered_fallback_leaves_nothing():
    resolver = ApResolver(ap_port=4070)
    with pytest.raises(ApResolveError, match="No access point available"):
        await resolver.resolve("dealer")