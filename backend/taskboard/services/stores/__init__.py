"""Board Store backends and the factory that picks one at startup."""

from typing import Optional

import httpx

from ...config import StoreConfig
from .base import BoardStore, LoadResult, Unsubscribe
from .jsonbin import JsonBinStore
from .keyvalue import KeyValueStore
from .memory import MemoryStore
from .realtime import RealtimeStore
from .server import ServerStore

_HTTP_STORES = {
    "keyvalue": KeyValueStore,
    "jsonbin": JsonBinStore,
    "realtime": RealtimeStore,
    "server": ServerStore,
}


def create_store(config: StoreConfig, transport: Optional[httpx.AsyncBaseTransport] = None) -> BoardStore:
    """Build the one store this process uses."""
    if config.kind == "memory":
        return MemoryStore()
    try:
        store_class = _HTTP_STORES[config.kind]
    except KeyError:
        raise ValueError(f"Unknown store kind: {config.kind}")
    return store_class(config, transport=transport)


__all__ = [
    "BoardStore",
    "LoadResult",
    "Unsubscribe",
    "MemoryStore",
    "KeyValueStore",
    "JsonBinStore",
    "RealtimeStore",
    "ServerStore",
    "create_store",
]
