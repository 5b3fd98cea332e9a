"""Basic usage examples for idempotency guard."""

from idemguard import (
    SKIPPED,
    BloomFilter,
    DuplicateExecutionError,
    IdempotencyGuard,
    MemoryStore,
    idempotent,
)

# One filter and one store per process, shared by every guarded call
bloom = BloomFilter.for_capacity(10_000, 0.01)
store = MemoryStore()
guard = IdempotencyGuard(store, bloom)


# Example 1: Explicit guarded call
def charge(user_id, amount):
    print(f"💳 Charging user {user_id} ${amount}")
    return {"charged": amount}


# Example 2: Decorated function
@idempotent(guard, ttl=300)
def send_invoice(user_id, amount):
    """Send an invoice email."""
    print(f"📧 Sending invoice email to user {user_id}")
    return {"invoice_id": 12345, "amount": amount}


# Example 3: Raise on duplicate
strict_guard = IdempotencyGuard(store, bloom, on_duplicate="raise")


@idempotent(strict_guard, ttl=300)
def critical_operation(operation_id):
    """Operation that should never be duplicated."""
    print(f"⚠️  Executing critical operation {operation_id}")
    return {"status": "completed"}


if __name__ == "__main__":
    print("=" * 60)
    print("Example 1: Explicit guarded call")
    print("=" * 60)

    args = ["user-42", "charge", "10.00"]
    result1 = guard.invoke(args, lambda: charge("user-42", "10.00"), ttl=5)
    print(f"Result: {result1}\n")

    print("Calling again with same arguments...")
    result2 = guard.invoke(args, lambda: charge("user-42", "10.00"), ttl=5)
    print(f"Result: {result2}")
    print(f"Skipped: {result2 is SKIPPED}\n")

    print("=" * 60)
    print("Example 2: Decorated function")
    print("=" * 60)

    print(f"Result: {send_invoice(user_id=123, amount=100)}")
    print(f"Result: {send_invoice(user_id=123, amount=100)}")
    print(f"Result: {send_invoice(user_id=456, amount=200)}\n")

    print("=" * 60)
    print("Example 3: Raise on Duplicate")
    print("=" * 60)

    print(f"Result: {critical_operation(operation_id='OP-001')}\n")

    print("Trying to call again...")
    try:
        critical_operation(operation_id="OP-001")
    except DuplicateExecutionError as e:
        print(f"❌ Error: {e}")
        print("This is expected - duplicate execution prevented!")
