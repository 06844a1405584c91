import logging
import types
import weakref
from typing import Callable, Dict, Generic, Iterable, Iterator, Optional, Tuple, TypeVar

from weakvaluemap.internal.weakref_utils import KeyedFinalizer

logger = logging.getLogger(__name__)

KT = TypeVar("KT")  # Key type.
VT = TypeVar("VT")  # Value type.


class InvalidInvocation(TypeError):
    pass


class WeakValueMap(Generic[KT, VT]):
    """
    A map that holds weak references to its values.

    An entry stays visible as long as something else keeps its value alive. Once the value is reclaimed,
    its entry is dropped by a finalizer. Until that finalizer has run, `size`, `has` and `keys` still
    report the entry, so `get` is the only reliable liveness check.

    Iteration works on a snapshot of the table in insertion order. `entries` and `values` produce None for
    values that died before they could be produced, `for_each` skips them.
    """

    type_tag = "WeakValueMap"

    data: Dict[KT, weakref.ref]
    finalizer: KeyedFinalizer[KT]

    def __init__(self, items: Optional[Iterable[Tuple[KT, VT]]] = None):
        if not isinstance(self, WeakValueMap) or hasattr(self, "data"):
            raise InvalidInvocation(f"{WeakValueMap.type_tag}.__init__ must only be invoked by constructing a map!")

        self.data = {}
        self.finalizer = KeyedFinalizer(self._release)

        if items is not None:
            if hasattr(items, "items"):
                items = items.items()
            for key, value in items:
                self.set(key, value)

    def _release(self, key):
        self.data.pop(key, None)

    @staticmethod
    def value_to_store(v: VT) -> weakref.ref:
        return weakref.ref(v)

    @staticmethod
    def store_to_value(v: weakref.ref) -> Optional[VT]:
        return v()

    @property
    def size(self) -> int:
        return len(self.data)

    def set(self, key: KT, value: VT) -> "WeakValueMap[KT, VT]":
        # Registering detaches the finalizer of the previous value first.
        # Otherwise its reclamation would remove the new entry.
        self.finalizer.register(key, value)
        self.data[key] = self.value_to_store(value)
        return self

    def get(self, key: KT, default=None):
        ref = self.data.get(key)
        if ref is None:
            return default
        value = self.store_to_value(ref)
        return default if value is None else value

    def has(self, key: KT) -> bool:
        return key in self.data

    def is_live(self, key: KT) -> bool:
        ref = self.data.get(key)
        return ref is not None and self.store_to_value(ref) is not None

    def delete(self, key: KT) -> bool:
        self.finalizer.release(key)
        return self.data.pop(key, None) is not None

    def clear(self) -> None:
        self.finalizer.clear()
        self.data.clear()

    def sweep(self) -> int:
        """Remove the entries whose values are gone but whose finalizers have not run yet."""
        dead_keys = [key for key, ref in list(self.data.items()) if self.store_to_value(ref) is None]
        for key in dead_keys:
            self.delete(key)

        if dead_keys:
            logger.debug("Swept %d dead entries.", len(dead_keys))
        return len(dead_keys)

    def for_each(self, visit: Callable, binding_context=None) -> None:
        if binding_context is not None:
            visit = types.MethodType(visit, binding_context)

        for key, ref in list(self.data.items()):
            value = self.store_to_value(ref)
            if value is not None:
                visit(value, key, self)

    def keys(self) -> Iterator[KT]:
        yield from list(self.data)

    def values(self) -> Iterator[Optional[VT]]:
        for ref in list(self.data.values()):
            yield self.store_to_value(ref)

    def entries(self) -> Iterator[Tuple[KT, Optional[VT]]]:
        for key, ref in list(self.data.items()):
            yield key, self.store_to_value(ref)

    items = entries

    def __iter__(self) -> Iterator[Tuple[KT, Optional[VT]]]:
        return self.entries()

    def __len__(self) -> int:
        return len(self.data)

    def __contains__(self, key) -> bool:
        return self.has(key)

    def __getitem__(self, key: KT) -> VT:
        value = self.get(key)
        if value is None:
            raise KeyError(key)
        return value

    def __setitem__(self, key: KT, value: VT) -> None:
        self.set(key, value)

    def __delitem__(self, key: KT) -> None:
        if not self.delete(key):
            raise KeyError(key)

    def __repr__(self):
        live_entries = ((key, value) for key, value in self.entries() if value is not None)
        return f"{self.type_tag}{{{', '.join(f'{key!r}: {value!r}' for key, value in live_entries)}}}"
