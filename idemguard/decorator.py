"""Decorator routing function calls through an IdempotencyGuard."""

import functools
from collections.abc import Callable
from typing import TypeVar

from .guard import IdempotencyGuard
from .key import build_call_args, generate_key

F = TypeVar("F", bound=Callable)


def idempotent(
    guard: IdempotencyGuard,
    ttl: float | None = None,
    key: Callable[..., str] | None = None,
) -> Callable[[F], F]:
    """Decorator to make a function idempotent.

    Args:
        guard: Guard deciding execute-or-skip for every call
        ttl: Time-to-live for idempotency records (seconds); None uses
            the guard's default, <= 0 never expires
        key: Custom key function; its result replaces the arguments

    The wrapped function returns SKIPPED instead of running when an equal
    call is already recorded (or raises DuplicateExecutionError if the
    guard was built with on_duplicate="raise").

    Example:
        @idempotent(guard, ttl=300)
        def charge(user_id, amount):
            charge_card(user_id, amount)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: object, **kwargs: object) -> object:
            call_args = build_call_args(func, args, kwargs, custom_key_func=key)
            return guard.invoke(
                call_args, functools.partial(func, *args, **kwargs), ttl=ttl
            )

        def idempotency_key(*args: object, **kwargs: object) -> str:
            """Fingerprint a call would be recorded under."""
            return generate_key(func, args, kwargs, custom_key_func=key)

        wrapper.idempotency_key = idempotency_key  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    return decorator
