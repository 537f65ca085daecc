from datetime import datetime, timezone

import pytest

from respot.cdn_url import CdnUrl, CdnUrlError, MaybeExpiringUrl, resolve_urls

FAR_FUTURE = 4102444800


def test_not_cdn_raises():
    with pytest.raises(CdnUrlError, match="resolved storage is not for CDN"):
        resolve_urls(["https://cdn.example.com/a"], is_cdn=False, is_expiring=False)


def test_non_expiring_urls_have_no_expiry():
    urls = resolve_urls(
        ["https://cdn.example.com/a", "https://cdn.example.com/b"],
        is_cdn=True,
        is_expiring=False,
    )
    assert urls == [
        MaybeExpiringUrl("https://cdn.example.com/a"),
        MaybeExpiringUrl("https://cdn.example.com/b"),
    ]


def test_token_expiry_is_parsed_with_margin():
    url = f"https://cdn.example.com/audio/f?__token__=exp={FAR_FUTURE}~hmac=abcdef"
    [result] = resolve_urls([url], is_cdn=True, is_expiring=True)
    assert result.url == url
    assert result.expiry == datetime.fromtimestamp(FAR_FUTURE - 300, tz=timezone.utc)


def test_token_expiry_without_tilde():
    url = f"https://cdn.example.com/audio/f?__token__=exp={FAR_FUTURE}"
    [result] = resolve_urls([url], is_cdn=True, is_expiring=True)
    assert result.expiry == datetime.fromtimestamp(FAR_FUTURE - 300, tz=timezone.utc)


def test_plain_query_expiry():
    url = f"https://cdn.example.com/audio/f?{FAR_FUTURE}_signature"
    [result] = resolve_urls([url], is_cdn=True, is_expiring=True)
    assert result.expiry == datetime.fromtimestamp(FAR_FUTURE - 300, tz=timezone.utc)


def test_expiring_without_query_is_invalid():
    with pytest.raises(ValueError):
        resolve_urls(["https://cdn.example.com/audio/f"], is_cdn=True, is_expiring=True)


def test_token_without_exp_is_invalid():
    with pytest.raises(ValueError):
        resolve_urls(
            ["https://cdn.example.com/f?__token__=hmac=abc"], is_cdn=True, is_expiring=True
        )


def test_try_get_url_unresolved():
    with pytest.raises(CdnUrlError, match="no URLs resolved"):
        CdnUrl(b"\x01" * 20).try_get_url()


def test_try_get_url_all_expired():
    urls = resolve_urls(
        ["https://cdn.example.com/f?1000_sig"], is_cdn=True, is_expiring=True
    )
    with pytest.raises(CdnUrlError, match="all URLs expired"):
        CdnUrl(b"\x01" * 20, urls).try_get_url()


def test_try_get_url_skips_expired():
    urls = resolve_urls(
        [
            "https://old.example.com/f?1000_sig",
            f"https://new.example.com/f?{FAR_FUTURE}_sig",
        ],
        is_cdn=True,
        is_expiring=True,
    )
    assert CdnUrl(b"\x02" * 20, urls).try_get_url() == f"https://new.example.com/f?{FAR_FUTURE}_sig"


def test_try_get_url_non_expiring_first():
    cdn = CdnUrl(b"\x03" * 20, [MaybeExpiringUrl("https://a.example.com/x")])
    assert cdn.try_get_url() == "https://a.example.com/x"
    assert cdn.file_id == b"\x03" * 20