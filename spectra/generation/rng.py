"""
Deterministic RNG derivation.

Every random decision is drawn from a stream keyed by the global seed plus a
stable identity (a path, a node id, a world name). Streams are SHA-256 in
counter mode, so the same key reproduces the same bytes on any machine and
in any generation order. There is no shared generator state between
identities.
"""

import hashlib
from typing import Sequence, TypeVar, Union

T = TypeVar("T")

_BLOCK_SIZE = hashlib.sha256().digest_size
_TWO_64 = 1 << 64

Identity = Union[str, int, bytes]


def _encode(part: Identity) -> bytes:
    if isinstance(part, bytes):
        return part
    return str(part).encode("utf-8")


def derive_key(seed: int, *identity: Identity) -> bytes:
    """Mix the seed and identity parts into a 32-byte stream key."""
    h = hashlib.sha256(b"spectra")
    for part in (seed,) + identity:
        h.update(b"\x00")
        h.update(_encode(part))
    return h.digest()


class DerivedStream:
    """A reproducible byte stream with uniform sampling helpers."""

    def __init__(self, key: bytes):
        self._key = key
        self._counter = 0
        self._buffer = b""

    def read(self, n: int) -> bytes:
        """Next n bytes of the stream."""
        while len(self._buffer) < n:
            block = hashlib.sha256(
                self._key + self._counter.to_bytes(8, "big")
            ).digest()
            self._buffer += block
            self._counter += 1
        out, self._buffer = self._buffer[:n], self._buffer[n:]
        return out

    def uint64(self) -> int:
        return int.from_bytes(self.read(8), "big")

    def random(self) -> float:
        """Uniform float in [0, 1) with 53 bits of precision."""
        return (self.uint64() >> 11) * (1.0 / (1 << 53))

    def randint(self, low: int, high: int) -> int:
        """Uniform integer in [low, high], both inclusive."""
        if low > high:
            raise ValueError(f"empty range [{low}, {high}]")
        span = high - low + 1
        limit = _TWO_64 - (_TWO_64 % span)
        while True:
            value = self.uint64()
            if value < limit:
                return low + value % span

    def choice(self, items: Sequence[T]) -> T:
        if not items:
            raise IndexError("cannot choose from an empty sequence")
        return items[self.randint(0, len(items) - 1)]

    def token(self, nbytes: int = 4) -> str:
        """Hex token of nbytes random bytes."""
        return self.read(nbytes).hex()


def derive(seed: int, *identity: Identity) -> DerivedStream:
    return DerivedStream(derive_key(seed, *identity))


def node_id_for(seed: int, path: str) -> str:
    """Stable node id for a normalized path under a seed."""
    return derive_key(seed, "node", path).hex()[:32]
