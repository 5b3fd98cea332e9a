"""Tests for the 128-bit mixing hash."""

import random

from idemguard.murmur import _fmix, _rotl, hash128, hash128_lanes


def test_empty_input_hashes_to_zero():
    """Test the seed-0 empty input, where every step keeps lanes at zero."""
    assert hash128_lanes(b"") == (0, 0, 0, 0)
    assert hash128(b"") == "0" * 32


def test_output_is_fixed_width():
    """Test that every lane renders as 8 zero-padded hex chars."""
    for length in range(0, 64):
        digest = hash128(bytes(range(length)))
        assert len(digest) == 32
        assert digest == digest.lower()
        int(digest, 16)


def test_lanes_are_32_bit():
    """Test that lanes stay within unsigned 32-bit range."""
    for lane in hash128_lanes(b"\xff" * 37):
        assert 0 <= lane <= 0xFFFFFFFF


def test_hex_matches_lanes():
    """Test that the hex digest is the concatenation of the lanes."""
    data = b"user-42:charge:10.00"
    lanes = hash128_lanes(data)
    assert hash128(data) == "".join(f"{lane:08x}" for lane in lanes)


def test_deterministic():
    """Test that hashing the same bytes twice gives the same digest."""
    data = b'["user-42","charge","10.00"]'
    assert hash128(data) == hash128(bytes(data))


def test_seed_changes_output():
    """Test that a non-zero seed gives a different digest."""
    assert hash128(b"abc", seed=1) != hash128(b"abc")


def test_every_tail_length_distinct():
    """Test that block and tail paths distinguish prefixes of one input."""
    data = bytes(range(1, 50))
    digests = {hash128(data[:n]) for n in range(len(data) + 1)}
    assert len(digests) == len(data) + 1


def test_single_bit_flip_changes_every_lane():
    """Test avalanche: one flipped bit changes all four lanes."""
    data = bytearray(b"0123456789abcdef0123")
    original = hash128_lanes(bytes(data))
    data[5] ^= 0x01
    flipped = hash128_lanes(bytes(data))
    assert all(a != b for a, b in zip(original, flipped))


def test_no_collisions_in_large_corpus():
    """Test that distinct inputs produce distinct digests."""
    rng = random.Random(1234)
    inputs = {rng.randbytes(rng.randint(0, 40)) for _ in range(20000)}
    digests = {hash128(data) for data in inputs}
    assert len(digests) == len(inputs)


def test_rotl():
    """Test 32-bit left rotation."""
    assert _rotl(0x80000000, 1) == 1
    assert _rotl(0x12345678, 8) == 0x34567812


def test_fmix_zero_fixed_point():
    """Test that the avalanche step maps zero to zero and mixes others."""
    assert _fmix(0) == 0
    assert _fmix(1) != 1
