# respot

Building blocks for a streaming audio client. Each module can be used on its own.

- `respot.range_set`: `Range` (a half-open interval with `end()`) and `RangeSet`,
  a sorted set of disjoint, non-touching ranges with `add_range`,
  `subtract_range`, `union`, `minus`, `intersection`, `contains` and
  `contained_length_from_value`. `len()` of a set is the number of positions
  it covers.
- `respot.decrypt`: `AudioDecrypt`, a file-like reader that decrypts an
  AES-128-CTR audio stream with a 16-byte key and keeps the keystream aligned
  after `seek`. With `key=None` it passes data through unchanged.
- `respot.config`: `DeviceType` (an `IntEnum`; `DeviceType.from_str` parses a
  name case-insensitively and raises `ValueError` for unknown names) and the
  `SessionConfig` dataclass (client id, random device id, proxy, access point
  port, temporary directory, autoplay).
- `respot.connect_config`: `ConnectConfig`, device settings (name, device type,
  initial volume 50, volume control on by default).
- `respot.authentication`: `Credentials`, built with `with_password` or decoded
  from an encrypted base64 blob with `with_blob(username, encrypted_blob,
  device_id)`, and turned to and from a JSON-ready mapping with `to_dict` /
  `from_dict`. Bad input raises `AuthenticationError`.
- `respot.cache`: `Cache` for credentials (`credentials.json`), volume and
  audio files, with an optional size limit that deletes least recently used
  audio files (`SizeLimiter`, `FsSizeLimiter`). Audio files are stored under
  the hex form of their file id, split after the first two characters.
- `respot.cdn_url`: `resolve_urls(cdn_urls, is_cdn, is_expiring)` reads expiry
  times out of CDN URLs (minus a five minute margin) and `CdnUrl.try_get_url`
  returns the first one not yet expired, raising `CdnUrlError` otherwise.
- `respot.apresolve`: `ApResolver` hands out `(host, port)` pairs for the
  `accesspoint`, `dealer` and `spclient` endpoints, taken from an async `fetch`
  callable you supply and topped up with `ApResolveData.fallback()` addresses
  when any list is empty. `process_ap_strings` parses `host:port` strings.
- `respot.channel`: `ChannelManager` allocates numbered `Channel`s and routes
  packets to them by the two-byte channel id; a `Channel` is an async iterator
  of `HeaderEvent` and `DataEvent`, with `headers()` and `data()` helpers.
  The manager also keeps a download rate estimate.
- `respot.fetch`: `AudioFileShared` and `StreamLoaderController` track which
  byte ranges of a file were requested and downloaded, put `FetchCommand`s on
  a queue you supply, and block in `fetch_blocking` until a range has arrived
  (raising `AudioFileError` on timeout).

## Installation

    pip install .

For the tests:

    pip install ".[test]"
    pytest

## Examples

Range sets:

    from respot.range_set import Range, RangeSet

    ranges = RangeSet()
    ranges.add_range(Range(0, 10))
    ranges.add_range(Range(20, 5))
    print(ranges)              # ([0, 9][20, 24])
    print(len(ranges))         # 15
    print(ranges.contains(22)) # True

Decrypting a stream:

    import io
    from respot.decrypt import AudioDecrypt

    key = bytes(16)
    with AudioDecrypt(key, io.BytesIO(encrypted_bytes)) as reader:
        data = reader.read(4096)

Device types:

    from respot.config import DeviceType

    DeviceType.from_str("speaker")   # DeviceType.SPEAKER
    str(DeviceType.TV)               # "TV"

Credentials:

    from respot.authentication import Credentials

    password = "password"
    creds = Credentials.with_password("user", password)
    restored = Credentials.from_dict(creds.to_dict())

A cache with a size limit:

    from respot.cache import Cache

    cache = Cache("cache", "cache", "cache/files", 1_000_000_000)
    cache.save_volume(32768)
    print(cache.volume())      # 32768

Waiting for downloaded data:

    import queue
    from respot.fetch import AudioFileShared, StreamLoaderController
    from respot.range_set import Range

    commands = queue.Queue()
    shared = AudioFileShared(file_size=1000, bytes_per_second=160)
    controller = StreamLoaderController(1000, commands, shared)
    shared.mark_downloaded(Range(0, 1000))
    controller.fetch_blocking(Range(0, 100))   # returns at once

## What this package does not do

It has no network session of its own: it does not log in, does not open
connections, and does not perform HTTP requests. `ApResolver` gets its resolve
document only from the `fetch` callable you pass; `ChannelManager` only sees
the packets you hand to `dispatch`; `StreamLoaderController` only puts
`FetchCommand`s on a queue, and nothing in the package reads that queue and
downloads the ranges. There is no player, no audio output, no remote-control
protocol and no command-line program.