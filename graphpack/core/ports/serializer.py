from typing import Protocol, Any, TYPE_CHECKING

from graphpack.core.models.types import TypeDescriptor

if TYPE_CHECKING:
    from graphpack.core.context import ReadContext, WriteContext


class Serializer(Protocol):
    """
    Encoding/decoding strategy for one wire type.

    Implementations must be:
    - stateless across calls: all per-call state (buffer, reference
      table, substitution links, depth) lives in the context
    - symmetric: decode() consumes exactly what encode() produced
    - recursive only through the context (ctx.write_ref / ctx.read_ref),
      so that identity tracking and depth limits apply to nested values

    The reference marker and the type tag are written by the context
    before encode() is called; a serializer only writes its payload.
    """

    type_descriptor: TypeDescriptor
    """Descriptor written as the type tag of every value this serializer encodes."""

    tracks_refs: bool
    """
    Whether values are identity-tracked. Immutable value types set this
    to False and are always written inline.
    """

    def encode(self, value: Any, ctx: "WriteContext") -> None:
        """Write the payload of `value`."""

    def decode(self, ctx: "ReadContext") -> Any:
        """
        Read a payload and return the value.

        Composite serializers must call ctx.reference(obj) as soon as the
        (still empty) instance exists, before decoding nested values, so
        that cycles back to it resolve.
        """
