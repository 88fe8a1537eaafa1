"""Zeroizable container for key material."""

from __future__ import annotations


class SecureBytes:
    """Mutable byte buffer that can be wiped after use.

    Derived keys are held in SecureBytes so readers can overwrite them
    once a conversion finishes. Python may still keep transient copies,
    so this narrows rather than eliminates exposure.

    Example:
        >>> key = SecureBytes(b"\\x01" * 32)
        >>> len(key)
        32
        >>> key.zeroize()
        >>> key.data
        b''
    """

    __slots__ = ("_buffer",)

    def __init__(self, data: bytes | bytearray) -> None:
        self._buffer = bytearray(data)

    @property
    def data(self) -> bytes:
        """Return an immutable copy of the buffer."""
        return bytes(self._buffer)

    def zeroize(self) -> None:
        """Overwrite the buffer with zeros and release it."""
        for i in range(len(self._buffer)):
            self._buffer[i] = 0
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def __bool__(self) -> bool:
        return len(self._buffer) > 0

    def __enter__(self) -> SecureBytes:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.zeroize()

    def __repr__(self) -> str:
        return f"SecureBytes(<{len(self._buffer)} bytes>)"
