"""Transparent AES-128-CTR decryption of audio file streams."""

from __future__ import annotations

import io
from typing import BinaryIO, Optional

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

AUDIO_AESIV = bytes(
    [
        0x72, 0xE0, 0x67, 0xFB, 0xDD, 0xCB, 0xCF, 0x77,
        0xEB, 0xE8, 0xBC, 0x64, 0x3F, 0x63, 0x0D, 0x93,
    ]
)

_BLOCK = 16
_IV_INT = int.from_bytes(AUDIO_AESIV, "big")


class AudioDecrypt:
    """Wraps a readable stream and decrypts it; with no key it passes data through."""

    def __init__(self, key: Optional[bytes], reader: BinaryIO) -> None:
        if key is not None and len(key) != _BLOCK:
            raise ValueError("audio key must be 16 bytes long")
        self._key = bytes(key) if key is not None else None
        self._reader = reader
        self._position = 0

    def _apply_keystream(self, data: bytes) -> bytes:
        block, skip = divmod(self._position, _BLOCK)
        counter = (_IV_INT + block) % (1 << 128)
        decryptor = Cipher(
            algorithms.AES(self._key), modes.CTR(counter.to_bytes(_BLOCK, "big"))
        ).decryptor()
        return decryptor.update(bytes(skip) + data)[skip:]

    def read(self, size: int = -1) -> bytes:
        data = self._reader.read(size)
        if self._key is not None and data:
            data = self._apply_keystream(data)
        self._position += len(data)
        return data

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        self._position = self._reader.seek(offset, whence)
        return self._position

    def tell(self) -> int:
        return self._position

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def close(self) -> None:
        self._reader.close()

    def __enter__(self) -> AudioDecrypt:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()