def ensure_float(value: object, default: float | None = 0.0) -> float | None:
    """Convert a value to float, with a default fallback."""
    try:
        return float(value) if isinstance(value, (int, float, str)) else default
    except (TypeError, ValueError):
        return default


def is_permanent(ttl: float | None) -> bool:
    """A missing or non-positive TTL means the record never expires."""
    return ttl is None or ttl <= 0


def expiry_from_ttl(ttl: float | None, now: float) -> float | None:
    """Absolute expiry timestamp for ``ttl`` seconds from ``now``."""
    if is_permanent(ttl):
        return None
    return now + ttl
