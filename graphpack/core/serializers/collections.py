from typing import Any, TYPE_CHECKING

from graphpack.core.models.types import Type
from graphpack.core.ports.serializer import Serializer

if TYPE_CHECKING:
    from graphpack.core.context import ReadContext, WriteContext


class ListSerializer:
    """
    Ordered, possibly heterogeneous sequence.

    Wire shape: varuint count, then each element as a full value (reference
    marker, type tag, payload) in order. The decoded list is registered in
    its slot while still empty, so a list that contains itself, directly
    or through its elements, round-trips.
    """
    tracks_refs = True

    def __init__(self, element: Serializer | None = None) -> None:
        self.element = element
        self.type_descriptor = Type.list(element.type_descriptor if element else None)

    def encode(self, value: list[Any], ctx: "WriteContext") -> None:
        ctx.writer.write_varuint(len(value))
        for item in value:
            ctx.write_ref(item, self.element)

    def decode(self, ctx: "ReadContext") -> list[Any]:
        count = ctx.reader.read_varuint()
        result: list[Any] = []
        ctx.reference(result)
        for _ in range(count):
            result.append(ctx.read_ref())
        return result


class TupleSerializer:
    """
    Immutable sequence.

    A tuple only exists once all of its elements are decoded, so its slot
    stays pending meanwhile: an element that refers back to the enclosing
    tuple is a ForwardReferenceViolation.
    """
    tracks_refs = True
    type_descriptor = Type.tuple()

    def encode(self, value: tuple[Any, ...], ctx: "WriteContext") -> None:
        ctx.writer.write_varuint(len(value))
        for item in value:
            ctx.write_ref(item)

    def decode(self, ctx: "ReadContext") -> tuple[Any, ...]:
        count = ctx.reader.read_varuint()
        return tuple(ctx.read_ref() for _ in range(count))


class SetSerializer:
    tracks_refs = True
    type_descriptor = Type.set()

    def encode(self, value: set[Any], ctx: "WriteContext") -> None:
        ctx.writer.write_varuint(len(value))
        for item in value:
            ctx.write_ref(item)

    def decode(self, ctx: "ReadContext") -> set[Any]:
        count = ctx.reader.read_varuint()
        result: set[Any] = set()
        ctx.reference(result)
        for _ in range(count):
            result.add(ctx.read_ref())
        return result


class FrozenSetSerializer:
    """
    Immutable set. Like a tuple, it is built only after all of its
    elements are decoded, so its slot stays pending meanwhile.
    """
    tracks_refs = True
    type_descriptor = Type.frozenset()

    def encode(self, value: frozenset[Any], ctx: "WriteContext") -> None:
        ctx.writer.write_varuint(len(value))
        for item in value:
            ctx.write_ref(item)

    def decode(self, ctx: "ReadContext") -> frozenset[Any]:
        count = ctx.reader.read_varuint()
        return frozenset(ctx.read_ref() for _ in range(count))


class MapSerializer:
    """
    Key-value map.

    Wire shape: varuint pair count, then a flat alternating sequence of
    key and value, each a full value, in insertion order. Keys are not
    restricted to primitives and are reference-tracked like any other
    value. Decoding produces a dict, which keeps insertion order.
    """
    tracks_refs = True

    def __init__(
        self,
        key: Serializer | None = None,
        value: Serializer | None = None,
    ) -> None:
        self.key = key
        self.value = value
        self.type_descriptor = Type.map(
            key.type_descriptor if key else None,
            value.type_descriptor if value else None,
        )

    def encode(self, value: dict[Any, Any], ctx: "WriteContext") -> None:
        ctx.writer.write_varuint(len(value))
        for k, v in value.items():
            ctx.write_ref(k, self.key)
            ctx.write_ref(v, self.value)

    def decode(self, ctx: "ReadContext") -> dict[Any, Any]:
        count = ctx.reader.read_varuint()
        result: dict[Any, Any] = {}
        ctx.reference(result)
        for _ in range(count):
            k = ctx.read_ref()
            result[k] = ctx.read_ref()
        return result
