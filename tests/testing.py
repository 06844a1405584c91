from dataclasses import dataclass


class DummySupportsWeakRefs:
    pass


class DummyDoesNotSupportWeakRefs:
    __slots__ = ()


@dataclass(eq=False)
class BoxedValue:
    value: int
