"""Building blocks for a streaming audio client: range sets, decryption, credentials, caching and download tracking."""

__version__ = "0.5.0"