from dataclasses import dataclass, field
from enum import Enum, Flag
from typing import Any, NamedTuple

from graphpack.core.codec import GraphCodec


def round_trip(codec: GraphCodec, value: Any, **kwargs: Any) -> Any:
    return codec.deserialize(codec.serialize(value, **kwargs))


# Plain graph types

class Node:
    def __init__(self, name: str, children: list["Node"] | None = None) -> None:
        self.name = name
        self.children = children if children is not None else []
        self.parent: Node | None = None


class Slotted:
    __slots__ = ("x", "y")

    def __init__(self, x: int, y: int) -> None:
        self.x = x
        self.y = y


@dataclass
class Point:
    x: int
    y: int


@dataclass
class PointV1:
    x: int
    y: int


@dataclass
class PointV2:
    x: int
    y: int
    label: Any = None


@dataclass
class PointV3:
    x: int
    y: int
    label: Any = "origin"
    tags: list[str] = field(default_factory=list)


@dataclass
class Holder:
    items: list[int]
    frozen: tuple[str, ...]


# Schema evolution samples

@dataclass
class Extra:
    note: str


@dataclass
class SenderPoint:
    x: int
    y: int
    extra: Any = None


@dataclass
class ReceiverPoint:
    x: int
    y: int


# Substitution samples

@dataclass
class CustomReplaceClass1:
    name: str

    def __write_replace__(self):
        return CustomReplaceClass1.Replaced(self.name)

    @dataclass
    class Replaced:
        name: str

        def __read_resolve__(self):
            return CustomReplaceClass1(self.name)


@dataclass
class CustomReplaceClass2:
    copy: bool
    age: int

    def __write_replace__(self):
        if self.age > 5:
            return [self.copy, self.age]
        if self.copy:
            return CustomReplaceClass2(self.copy, self.age)
        return self

    def __read_resolve__(self):
        if self.copy:
            return CustomReplaceClass2(self.copy, self.age)
        return self


@dataclass
class Subclass1(CustomReplaceClass2):
    state: int = 0

    def __write_replace__(self):
        if self.age > 5:
            return [self.copy, self.age]
        if self.copy:
            return Subclass1(self.copy, self.age, self.state)
        return self

    def __read_resolve__(self):
        if self.copy:
            return Subclass1(self.copy, self.age, self.state)
        return self


@dataclass
class Subclass2(CustomReplaceClass2):
    state: int = 0


@dataclass
class StatefulSubclass(CustomReplaceClass2):
    state: int = 0

    def __write_replace__(self):
        if self.age > 5:
            return [self.copy, self.age]
        if self.copy:
            return StatefulSubclass(self.copy, self.age, self.state)
        return self

    def __read_resolve__(self):
        if self.copy:
            return StatefulSubclass(self.copy, self.age, self.state)
        return self

    def __getstate__(self):
        return {"copy": self.copy, "age": self.age}, self.state

    def __setstate__(self, state):
        fields, self.state = state
        self.__dict__.update(fields)


class CustomReplaceClass3:
    def __init__(self, ref: Any = None) -> None:
        self.ref = ref

    def __write_replace__(self):
        return self.ref

    def __read_resolve__(self):
        return self.ref


class CustomReplaceClass4:
    def __init__(self, ref: Any = None) -> None:
        self.ref = ref

    def __write_replace__(self):
        return self

    def __read_resolve__(self):
        return self.ref


class CustomReplaceClass5:
    def __write_replace__(self):
        raise RuntimeError("replace must not be inherited")

    def __read_resolve__(self):
        raise RuntimeError("resolve must not be inherited")


class Subclass3(CustomReplaceClass5):
    pass


class CustomReplaceClass6:
    def __write_replace__(self):
        return 1


class Broken:
    def __write_replace__(self):
        raise RuntimeError("boom")


class BrokenResolve:
    def __read_resolve__(self):
        raise RuntimeError("boom")


class Token:
    def __init__(self, value: str) -> None:
        self.value = value


@dataclass
class TokenProxy:
    value: str


# State hook samples

class Versioned:
    version = 2

    def __init__(self, name: str) -> None:
        self.name = name
        self.me = self

    def __getstate__(self):
        return self.version, self.__dict__

    def __setstate__(self, state):
        version, fields = state
        if version != self.version:
            raise ValueError(f"unsupported version {version}")
        self.__dict__.update(fields)


class DefaultState:
    """Only __setstate__ is customised: the default state is sent."""
    def __init__(self, value: int) -> None:
        self.value = value

    def __setstate__(self, state):
        self.__dict__.update(state)
        self.restored = True


class BrokenState:
    def __getstate__(self):
        raise RuntimeError("boom")


# Built-in derived samples

class Color(Enum):
    RED = 1
    GREEN = 2


class Shade(Enum):
    RED = 1


class Perm(Flag):
    R = 1
    W = 2
    X = 4


class Pair(NamedTuple):
    left: Any
    right: Any = None


class Triple(NamedTuple):
    a: Any
    b: Any
    c: Any


class TaggedList(list):
    label: str = ""


class FrozenTags(frozenset):
    pass


class Name(str):
    pass


@dataclass
class SimpleCollection:
    integer_list: list[int]
    strings: frozenset[str]


@dataclass
class SimpleMap:
    map1: dict[str, int]
    map2: Any
