"""
Backing store package.

Wraps the pooled Redis client. Every store failure leaves this package as
a shared ``BackendError``; callers never see redis exceptions.
"""

from .redis_store import KeyValueStore

__all__ = ["KeyValueStore"]
