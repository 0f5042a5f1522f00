"""
Key-value operations behind each route.

Handlers take the store and already-extracted inputs and return plain
values. They never build responses and never recover from store failures.
"""

from shared.errors import NotFound

from .store import KeyValueStore


async def get_value(store: KeyValueStore, key: str) -> bytes:
    value = await store.get(key)
    if value is None:
        raise NotFound(key)
    return value


async def set_value(store: KeyValueStore, key: str, body: bytes) -> None:
    await store.set(key, body)


async def list_keys(store: KeyValueStore) -> str:
    """Newline-joined list of every key, in no particular order."""
    return "\n".join(await store.keys())


async def delete_all(store: KeyValueStore) -> None:
    await store.flush_all()


async def delete_one(store: KeyValueStore, key: str) -> None:
    removed = await store.delete(key)
    if removed == 0:
        raise NotFound(key)
