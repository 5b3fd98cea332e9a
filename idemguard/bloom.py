"""Thread-safe Bloom filter used as the fast-path membership check."""

import math
import struct
import threading
from pathlib import Path

import structlog

from .murmur import hash128_lanes

logger = structlog.get_logger(__name__)

_HEADER = struct.Struct(">4sQIQ")
_MAGIC = b"IGBF"


def optimal_size(expected_items: int, false_positive_rate: float) -> int:
    """Number of bits for ``expected_items`` at ``false_positive_rate``.

    m = -n * ln(p) / (ln 2)^2
    """
    if expected_items <= 0:
        raise ValueError(f"expected_items must be positive, got {expected_items}")
    if not 0.0 < false_positive_rate < 1.0:
        raise ValueError(
            f"false_positive_rate must be in (0, 1), got {false_positive_rate}"
        )
    return math.ceil(-expected_items * math.log(false_positive_rate) / math.log(2) ** 2)


def optimal_hashes(size: int, expected_items: int) -> int:
    """Number of probes minimizing false positives: k = m / n * ln 2."""
    if expected_items <= 0:
        raise ValueError(f"expected_items must be positive, got {expected_items}")
    return max(1, round(size / expected_items * math.log(2)))


class BloomFilter:
    """Insertion-only probabilistic set with no false negatives.

    Probe positions use double hashing over two independent 64-bit halves
    of a 128-bit hash: probe i = (h1 + i * h2) mod size.

    All reads and writes of the bit array go through one lock, so a
    concurrent ``add`` can never lose a set bit.

    Args:
        size: Number of bits (m)
        num_hashes: Number of probes per key (k)
    """

    def __init__(self, size: int, num_hashes: int) -> None:
        if size <= 0:
            raise ValueError(f"size must be positive, got {size}")
        if num_hashes <= 0:
            raise ValueError(f"num_hashes must be positive, got {num_hashes}")

        self.size = size
        self.num_hashes = num_hashes
        self._bits = bytearray((size + 7) // 8)
        self._count = 0
        self._lock = threading.Lock()

    @classmethod
    def for_capacity(
        cls, expected_items: int, false_positive_rate: float = 0.01
    ) -> "BloomFilter":
        """Create a filter sized for ``expected_items`` insertions."""
        size = optimal_size(expected_items, false_positive_rate)
        return cls(size, optimal_hashes(size, expected_items))

    def _positions(self, key: str | bytes) -> list[int]:
        data = key.encode("utf-8") if isinstance(key, str) else bytes(key)
        l1, l2, l3, l4 = hash128_lanes(data)
        h1 = (l1 << 32) | l2
        h2 = ((l3 << 32) | l4) | 1
        return [(h1 + i * h2) % self.size for i in range(self.num_hashes)]

    def add(self, key: str | bytes) -> None:
        """Set every probe bit for ``key``."""
        positions = self._positions(key)
        with self._lock:
            for pos in positions:
                self._bits[pos >> 3] |= 1 << (pos & 7)
            self._count += 1

    def might_contain(self, key: str | bytes) -> bool:
        """Return False only if ``key`` was definitely never added."""
        positions = self._positions(key)
        with self._lock:
            return all(self._bits[pos >> 3] & (1 << (pos & 7)) for pos in positions)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, (str, bytes)):
            return False
        return self.might_contain(key)

    @property
    def count(self) -> int:
        """Number of ``add`` calls so far (duplicates included)."""
        return self._count

    def bit_count(self) -> int:
        """Number of bits currently set."""
        with self._lock:
            return sum(bin(byte).count("1") for byte in self._bits)

    def estimated_false_positive_rate(self) -> float:
        """Current false-positive probability from the fill ratio."""
        return (self.bit_count() / self.size) ** self.num_hashes

    def to_bytes(self) -> bytes:
        """Serialize the filter, header included."""
        with self._lock:
            header = _HEADER.pack(_MAGIC, self.size, self.num_hashes, self._count)
            return header + bytes(self._bits)

    @classmethod
    def from_bytes(cls, data: bytes) -> "BloomFilter":
        """Rebuild a filter produced by :meth:`to_bytes`."""
        if len(data) < _HEADER.size:
            raise ValueError("data too short for a bloom filter header")

        magic, size, num_hashes, count = _HEADER.unpack_from(data)
        if magic != _MAGIC:
            raise ValueError(f"bad bloom filter magic {magic!r}")

        bits = data[_HEADER.size:]
        if len(bits) != (size + 7) // 8:
            raise ValueError(
                f"expected {(size + 7) // 8} bytes of bits, got {len(bits)}"
            )

        bloom = cls(size, num_hashes)
        bloom._bits[:] = bits
        bloom._count = count
        return bloom

    def dump(self, path: str | Path) -> None:
        """Write the filter to ``path`` atomically."""
        path = Path(path)
        temp_path = path.with_suffix(path.suffix + ".tmp")
        temp_path.write_bytes(self.to_bytes())
        temp_path.replace(path)
        logger.info("bloom_dumped", path=str(path), count=self._count)

    @classmethod
    def load(cls, path: str | Path) -> "BloomFilter":
        """Read a filter written by :meth:`dump`."""
        bloom = cls.from_bytes(Path(path).read_bytes())
        logger.info(
            "bloom_loaded",
            path=str(path),
            size=bloom.size,
            num_hashes=bloom.num_hashes,
            count=bloom.count,
        )
        return bloom
