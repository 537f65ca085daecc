"""Login credentials and the decoding of stored credential blobs."""

from __future__ import annotations

import base64
import binascii
import enum
import hashlib
import io
from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

_BLOCK = 16


class AuthenticationType(enum.IntEnum):
    """The kinds of authentication data a login can carry."""

    AUTHENTICATION_USER_PASS = 0
    AUTHENTICATION_STORED_SPOTIFY_CREDENTIALS = 1
    AUTHENTICATION_STORED_FACEBOOK_CREDENTIALS = 2
    AUTHENTICATION_SPOTIFY_TOKEN = 3
    AUTHENTICATION_FACEBOOK_TOKEN = 4


class AuthenticationError(ValueError):
    """Raised when credentials cannot be built from the given data."""


def _auth_type(value: int) -> AuthenticationType:
    try:
        return AuthenticationType(value)
    except ValueError:
        raise AuthenticationError(f"unknown authentication type {value}") from None


class _BlobReader:
    """Reads the length-prefixed fields of a decrypted credentials blob."""

    def __init__(self, data: bytes) -> None:
        self._stream = io.BytesIO(data)

    def _read_exact(self, size: int) -> bytes:
        chunk = self._stream.read(size)
        if len(chunk) != size:
            raise AuthenticationError("unexpected end of credentials blob")
        return chunk

    def read_u8(self) -> int:
        return self._read_exact(1)[0]

    def read_int(self) -> int:
        lo = self.read_u8()
        if not lo & 0x80:
            return lo
        hi = self.read_u8()
        return (lo & 0x7F) | (hi << 7)

    def read_bytes(self) -> bytes:
        return self._read_exact(self.read_int())


def _blob_key(username: str, device_id: bytes) -> bytes:
    secret = hashlib.sha1(device_id).digest()
    derived = hashlib.pbkdf2_hmac("sha1", secret, username.encode("utf-8"), 0x100, 20)
    return hashlib.sha1(derived).digest() + (20).to_bytes(4, "big")


def _decode_base64(data: Union[str, bytes]) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise AuthenticationError(f"invalid base64 data: {exc}") from None


@dataclass
class Credentials:
    """The credentials used to log into the service."""

    username: str = ""
    auth_type: AuthenticationType = AuthenticationType.AUTHENTICATION_USER_PASS
    auth_data: bytes = field(default=b"")

    @classmethod
    def with_password(cls, username: str, password: str) -> Credentials:
        """Build credentials from a username and a password."""
        return cls(
            username=username,
            auth_type=AuthenticationType.AUTHENTICATION_USER_PASS,
            auth_data=password.encode("utf-8"),
        )

    @classmethod
    def with_blob(
        cls,
        username: str,
        encrypted_blob: Union[str, bytes],
        device_id: Union[str, bytes],
    ) -> Credentials:
        """Decrypt a base64 credentials blob bound to a username and device id."""
        if isinstance(device_id, str):
            device_id = device_id.encode("utf-8")
        key = _blob_key(username, device_id)

        data = _decode_base64(encrypted_blob)
        if len(data) < _BLOCK:
            raise AuthenticationError("credentials blob is too short")

        full = len(data) - len(data) % _BLOCK
        decryptor = Cipher(algorithms.AES(key), modes.ECB()).decryptor()
        decrypted = decryptor.update(data[:full]) + decryptor.finalize() + data[full:]
        blob = decrypted[:_BLOCK] + bytes(
            a ^ b for a, b in zip(decrypted[_BLOCK:], decrypted)
        )

        reader = _BlobReader(blob)
        reader.read_u8()
        reader.read_bytes()
        reader.read_u8()
        auth_type = _auth_type(reader.read_int())
        reader.read_u8()
        auth_data = reader.read_bytes()

        return cls(username=username, auth_type=auth_type, auth_data=auth_data)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping with the data base64 encoded."""
        return {
            "username": self.username,
            "auth_type": int(self.auth_type),
            "auth_data": base64.b64encode(self.auth_data).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Credentials:
        """Build credentials from a mapping as produced by ``to_dict``."""
        try:
            username = data["username"]
            auth_type = data["auth_type"]
            encoded = data["auth_data"] if "auth_data" in data else data["encoded_auth_blob"]
        except KeyError as exc:
            raise AuthenticationError(f"missing field {exc.args[0]}") from None
        if not isinstance(username, str):
            raise AuthenticationError("username must be a string")
        if not isinstance(auth_type, int) or isinstance(auth_type, bool):
            raise AuthenticationError("Invalid enum value")
        if not isinstance(encoded, str):
            raise AuthenticationError("auth_data must be a string")
        return cls(
            username=username,
            auth_type=_auth_type(auth_type),
            auth_data=_decode_base64(encoded),
        )