import logging
import weakref
from typing import Callable, Dict, Generic, Iterator, TypeVar

import objproxies

logger = logging.getLogger(__name__)

KT = TypeVar("KT")  # Key type.


def supports_weakrefs(value):
    return type(value).__weakrefoffset__ != 0


class ObjectProxy(objproxies.ObjectProxy):
    """A proxy object that supports weak references.

    Use it to store values whose type has no weakref slot (lists, dicts, ints...).
    The proxy is what gets weakly referenced, so the caller has to keep the proxy alive.
    """

    __slots__ = ("__weakref__",)


def _dispatch(registry_ref, key):
    registry = registry_ref()
    if registry is not None:
        registry._finalizer(key)


class KeyedFinalizer(Generic[KT]):
    """
    Finalizers indexed by a key chosen at registration time.

    At most one finalizer is pending per key: registering a key again detaches the previous one.
    The handler receives the key once the registered value has been reclaimed.
    """

    key_to_finalizer: Dict[KT, weakref.finalize]
    handler: Callable[[KT], None]

    def __init__(self, handler: Callable[[KT], None]):
        self.key_to_finalizer = {}
        self.handler = handler

    def _finalizer(self, key):
        # Only called for live registrations: detached finalizers never fire.
        self.key_to_finalizer.pop(key, None)
        logger.debug("Value registered under %r has been reclaimed.", key)
        self.handler(key)

    def register(self, key: KT, value) -> None:
        if not supports_weakrefs(value):
            raise TypeError(f"cannot create weak reference to {type(value).__name__!r} object")

        self.release(key)

        # The finalizer must not keep us (and thus the owner of the handler) alive.
        finalizer = weakref.finalize(value, _dispatch, weakref.ref(self), key)
        finalizer.atexit = False
        self.key_to_finalizer[key] = finalizer

    def release(self, key: KT) -> bool:
        finalizer = self.key_to_finalizer.pop(key, None)
        if finalizer is None:
            return False
        finalizer.detach()
        return True

    def clear(self):
        for finalizer in self.key_to_finalizer.values():
            finalizer.detach()
        self.key_to_finalizer.clear()

    def __contains__(self, key) -> bool:
        return key in self.key_to_finalizer

    def __len__(self) -> int:
        return len(self.key_to_finalizer)

    def __iter__(self) -> Iterator[KT]:
        # Take a snapshot of the keys. Finalizers can run while the caller iterates.
        return iter(list(self.key_to_finalizer))

    def __del__(self):
        self.clear()
