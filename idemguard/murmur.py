"""128-bit MurmurHash3-style mixing hash used for fingerprints."""

import struct

_MASK = 0xFFFFFFFF

_C = (0x239B961B, 0xAB0E9789, 0x38B34AE5, 0xA1E38B93)
_R1 = 15
_R2 = 19
_M = 5
_N = 0x561CCD1B

_BLOCK = struct.Struct(">4I")


def _rotl(value: int, shift: int) -> int:
    return ((value << shift) | (value >> (32 - shift))) & _MASK


def _mix_word(word: int, lane: int) -> int:
    """Scramble one 32-bit word with the constants of ``lane``."""
    word = (word * _C[lane]) & _MASK
    word = _rotl(word, _R1)
    return (word * _C[(lane + 1) % 4]) & _MASK


def _fmix(h: int) -> int:
    """Avalanche a 32-bit lane."""
    h ^= h >> 16
    h = (h * 0x85EBCA6B) & _MASK
    h ^= h >> 13
    h = (h * 0xC2B2AE35) & _MASK
    h ^= h >> 16
    return h


def _cross_add(h: list[int]) -> None:
    h[0] = (h[0] + h[1] + h[2] + h[3]) & _MASK
    h[1] = (h[1] + h[0]) & _MASK
    h[2] = (h[2] + h[0]) & _MASK
    h[3] = (h[3] + h[0]) & _MASK


def hash128_lanes(data: bytes, seed: int = 0) -> tuple[int, int, int, int]:
    """Hash ``data`` into four unsigned 32-bit lanes.

    Blocks of 16 bytes are read as four big-endian words, one per lane.
    Trailing bytes are folded into the lane they fall into, low byte first.

    Args:
        data: Input bytes
        seed: Initial value of every lane

    Returns:
        The four finalized lanes ``(h1, h2, h3, h4)``
    """
    length = len(data)
    h = [seed & _MASK] * 4

    nblocks = length // 16
    for block in range(nblocks):
        words = _BLOCK.unpack_from(data, block * 16)
        for lane in range(4):
            h[lane] ^= _mix_word(words[lane], lane)
            h[lane] = _rotl(h[lane], _R2)
            h[lane] = (h[lane] + h[(lane + 1) % 4]) & _MASK
            h[lane] = (h[lane] * _M + _N) & _MASK

    tail = data[nblocks * 16:]
    for lane in reversed(range(4)):
        chunk = tail[lane * 4:lane * 4 + 4]
        if chunk:
            h[lane] ^= _mix_word(int.from_bytes(chunk, "little"), lane)

    for lane in range(4):
        h[lane] ^= length

    _cross_add(h)
    for lane in range(4):
        h[lane] = _fmix(h[lane])
    _cross_add(h)

    return h[0], h[1], h[2], h[3]


def hash128(data: bytes, seed: int = 0) -> str:
    """Return the 128-bit hash of ``data`` as 32 lowercase hex characters."""
    return "".join(f"{lane:08x}" for lane in hash128_lanes(data, seed))
