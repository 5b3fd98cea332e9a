"""Examples of using different storage backends."""

from pathlib import Path

from idemguard import idempotent
from idemguard.config import GuardSettings
from idemguard.factory import build_runtime


# Example 1: FileStore, restarted with a persisted filter
print("=" * 60)
print("Example 1: FileStore (persistent, multi-process safe)")
print("=" * 60)

# The Bloom filter lives in process memory. bloom_path saves it on a clean
# shutdown so the next start still routes known keys to the store.
file_settings = GuardSettings(
    backend="file",
    file_directory=Path("/tmp/idempotency_demo"),
    bloom_path=Path("/tmp/idempotency_demo.bloom"),
    log_format="console",
)


def create_invoice_file(user_id: int, amount: float) -> dict:
    """Create an invoice (using FileStore)."""
    print(f"  → Creating invoice for user {user_id}, amount ${amount}")
    return {"invoice_id": 456, "user_id": user_id, "amount": amount}


with build_runtime(file_settings) as runtime:
    guarded = idempotent(runtime.guard, ttl=300)(create_invoice_file)
    print(f"First call result: {guarded(user_id=1, amount=100.0)}")
    print(f"Second call result: {guarded(user_id=1, amount=100.0)}")

# Simulated restart: the filter is reloaded from bloom_path
with build_runtime(file_settings) as runtime:
    guarded = idempotent(runtime.guard, ttl=300)(create_invoice_file)
    print(f"After restart: {guarded(user_id=1, amount=100.0)}")
    runtime.guard.store.clear()

file_settings.bloom_path.unlink(missing_ok=True)

print()

# Example 2: RedisStore, configured from the environment
print("=" * 60)
print("Example 2: RedisStore (store shared across servers)")
print("=" * 60)

try:
    settings = GuardSettings(backend="redis", redis_prefix="myapp:", log_format="console")

    with build_runtime(settings) as runtime:
        runtime.guard.store.client.ping()  # Test connection

        @idempotent(runtime.guard, ttl=300)
        def create_invoice_redis(user_id: int, amount: float) -> dict:
            """Create an invoice (using RedisStore)."""
            print(f"  → Creating invoice for user {user_id}, amount ${amount}")
            return {"invoice_id": 789, "user_id": user_id, "amount": amount}

        print(f"First call result: {create_invoice_redis(user_id=1, amount=100.0)}")
        print(f"Second call result: {create_invoice_redis(user_id=1, amount=100.0)}")

    print("\n✅ RedisStore example completed successfully!")

except Exception as e:
    print(f"⚠️  Redis not available: {e}")
    print("   Make sure Redis is running: redis-server")

print()

# Example 3: Comparing stores
print("=" * 60)
print("Example 3: Store Comparison")
print("=" * 60)

print("""
Store Comparison:

┌───────────────┬────────────┬──────────────┬─────────────┬──────────────┐
│ Store         │ Persistent │ Multi-Process│ Multi-Server│ Expiry       │
├───────────────┼────────────┼──────────────┼─────────────┼──────────────┤
│ MemoryStore   │     ❌     │      ❌      │      ❌     │ lazy + sweep │
│ FileStore     │     ✅     │      ✅      │      ❌     │ lazy + sweep │
│ RedisStore    │     ✅     │      ✅      │      ✅     │ server (PX)  │
│ MongoStore    │     ✅     │      ✅      │      ✅     │ TTL index    │
│ PostgresStore │     ✅     │      ✅      │      ✅     │ sweep (20s)  │
└───────────────┴────────────┴──────────────┴─────────────┴──────────────┘

Select one at startup with IDEMPOTENCY_BACKEND=memory|file|redis|mongo|postgres.
The Bloom filter is per process: set IDEMPOTENCY_BLOOM_PATH so a restarted
process reloads it, and expect other servers to re-run calls they never saw.
""")
