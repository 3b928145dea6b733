import enum
import functools
import logging
import operator
from typing import Any, Callable, TYPE_CHECKING

from graphpack.core.errors import InstanceStateFailure, MalformedInput
from graphpack.core.models.types import Type
from graphpack.core.ports.serializer import Serializer
from graphpack.core.serializers.structs import new_instance, read_attributes, write_attributes

if TYPE_CHECKING:
    from graphpack.core.context import ReadContext, WriteContext

MUTABLE_BASES: tuple[type, ...] = (list, dict, set)
IMMUTABLE_BASES: tuple[type, ...] = (tuple, frozenset)
SCALAR_BASES: tuple[type, ...] = (int, float, str, bytes)

# Py_TPFLAGS_HEAPTYPE: set on classes created by a class statement.
_HEAPTYPE = 1 << 9


def builtin_base(cls: type) -> type | None:
    """Nearest built-in container or scalar class `cls` derives from."""
    bases = MUTABLE_BASES + IMMUTABLE_BASES + SCALAR_BASES
    for klass in cls.__mro__[1:]:
        if klass in bases:
            return klass
    return None


def opaque_base(cls: type) -> type | None:
    """
    First class in the MRO of `cls` implemented in C whose instances hold
    state outside __dict__ and __slots__ (deque, datetime, exceptions).
    """
    for klass in cls.__mro__:
        if klass is object or klass.__flags__ & _HEAPTYPE:
            continue
        if klass.__basicsize__ > object.__basicsize__ or klass.__itemsize__:
            return klass
    return None


class EnumSerializer:
    """
    Enum member, written as its member name and looked up by name on the
    receiving class. Members are singletons, so they are not
    reference-tracked. Composite flag values travel as "A|B".
    """
    tracks_refs = False

    def __init__(self, cls: type[enum.Enum], tag: str) -> None:
        self.cls = cls
        self.type_descriptor = Type.struct(tag)

    def encode(self, value: enum.Enum, ctx: "WriteContext") -> None:
        ctx.writer.write_string(value.name or "")

    def decode(self, ctx: "ReadContext") -> enum.Enum:
        name = ctx.reader.read_string()
        try:
            if issubclass(self.cls, enum.Flag):
                members = (self.cls[part] for part in name.split("|") if part)
                return functools.reduce(operator.or_, members, self.cls(0))
            return self.cls[name]
        except KeyError as exc:
            raise MalformedInput(f"{self.cls.__qualname__} has no member {name!r}") from exc


class NamedTupleSerializer:
    """
    Named tuple: varuint count, then the fields in declaration order.

    The instance is built by calling the class once every field is
    decoded, so fields missing from the payload take the receiver's
    defaults. Like a plain tuple, its slot stays pending meanwhile.
    """
    tracks_refs = True

    def __init__(self, cls: type, tag: str) -> None:
        self.cls = cls
        self.type_descriptor = Type.struct(tag)

    def encode(self, value: tuple[Any, ...], ctx: "WriteContext") -> None:
        ctx.writer.write_varuint(len(value))
        for item in value:
            ctx.write_ref(item)

    def decode(self, ctx: "ReadContext") -> tuple[Any, ...]:
        count = ctx.reader.read_varuint()
        items = [ctx.read_ref() for _ in range(count)]
        try:
            return self.cls(*items)
        except Exception as exc:
            raise InstanceStateFailure(self.cls, "construct") from exc


class BuiltinSubclassSerializer:
    """
    Subclass of a built-in container or scalar (OrderedDict, Counter, a
    list subclass, a str subclass...).

    Wire shape: the base payload, then the instance attributes as
    (name, value) pairs:

        list, tuple, set, frozenset   varuint count, elements
        dict                          varuint count, key/value pairs
        int, float, str, bytes        the built-in payload of the value

    Mutable instances are created empty and referenced before their
    elements are decoded, then filled through their own append, add or
    item assignment. Immutable instances are built from the decoded
    elements, so their slot stays pending until then.
    """
    tracks_refs = True

    def __init__(
        self,
        cls: type,
        tag: str,
        base: type,
        scalar: Serializer | None = None,
    ) -> None:
        if base in SCALAR_BASES and scalar is None:
            raise ValueError(f"A {base.__name__} subclass requires the serializer of its base")
        self.cls = cls
        self.base = base
        self.scalar = scalar
        self.type_descriptor = Type.struct(tag)
        self._logger = logging.getLogger("graphpack.serializers.builtin_subclass")

    def encode(self, value: Any, ctx: "WriteContext") -> None:
        if self.scalar is not None:
            self.scalar.encode(value, ctx)
        elif self.base is dict:
            ctx.writer.write_varuint(len(value))
            for k, v in value.items():
                ctx.write_ref(k)
                ctx.write_ref(v)
        else:
            ctx.writer.write_varuint(len(value))
            for item in value:
                ctx.write_ref(item)
        write_attributes(value, ctx)

    def decode(self, ctx: "ReadContext") -> Any:
        if self.base in MUTABLE_BASES:
            obj = new_instance(self.cls)
            ctx.reference(obj)
            count = ctx.reader.read_varuint()
            if self.base is dict:
                for _ in range(count):
                    k = ctx.read_ref()
                    self._apply(obj.__setitem__, k, ctx.read_ref())
            else:
                add = obj.append if self.base is list else obj.add
                for _ in range(count):
                    self._apply(add, ctx.read_ref())
        else:
            if self.scalar is not None:
                raw = self.scalar.decode(ctx)
            else:
                count = ctx.reader.read_varuint()
                raw = [ctx.read_ref() for _ in range(count)]
            try:
                obj = self.base.__new__(self.cls, raw)
            except Exception as exc:
                raise InstanceStateFailure(self.cls, "construct") from exc
            ctx.reference(obj)

        read_attributes(obj, ctx, self._logger)
        return obj

    def _apply(self, method: Callable[..., Any], *args: Any) -> None:
        try:
            method(*args)
        except Exception as exc:
            raise InstanceStateFailure(self.cls, "populate") from exc
