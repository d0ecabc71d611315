from .aggregates import AggregateMixin
from .gateway import BaseGateway
from .local import KeyValueStore, LocalStore, MemoryStore
from .remote import RemoteMirror


class PersistenceGateway(BaseGateway, AggregateMixin):
    pass


__all__ = [
    "AggregateMixin",
    "BaseGateway",
    "KeyValueStore",
    "LocalStore",
    "MemoryStore",
    "PersistenceGateway",
    "RemoteMirror",
]
