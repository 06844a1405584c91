from weakvaluemap.internal.weak_value_map import WeakValueMap, InvalidInvocation
from weakvaluemap.internal.weakref_utils import ObjectProxy, KeyedFinalizer, supports_weakrefs

__all__ = ["WeakValueMap", "InvalidInvocation", "ObjectProxy", "KeyedFinalizer", "supports_weakrefs"]
