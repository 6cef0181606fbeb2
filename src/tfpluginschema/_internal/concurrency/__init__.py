"""Thread synchronisation primitives."""

from tfpluginschema._internal.concurrency.rwlock import ReadWriteLock

__all__ = ["ReadWriteLock"]
