"""Event Store."""

from eventscale.store.event_store import EventStore, InsertListener

__all__ = ["EventStore", "InsertListener"]
