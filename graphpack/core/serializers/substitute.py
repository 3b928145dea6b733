from typing import Any, TYPE_CHECKING

from graphpack.core.errors import MalformedInput
from graphpack.core.ports.serializer import Serializer
from graphpack.core.wire.markers import RefFlag, SubstitutionMarker

if TYPE_CHECKING:
    from graphpack.core.context import ReadContext, WriteContext


class SubstituteSerializer:
    """
    Wraps the structural serializer of a type that opts into substitution.

    Encode, with the original's slot already reserved by the context:
        SAME      + structural payload, when the replace hook keeps the value
        REPLACED  + the substitute as a full nested value (own marker/tag)

    Decode:
        SAME      -> structural decode (the instance is registered in its
                     slot before its fields), then the resolve hook of the
                     type; its result becomes the slot's final value
        REPLACED  -> the original's pending slot is forwarded to the
                     substitute's slot while the substitute decodes, so a
                     cycle that comes back to the original lands on the
                     in-progress substitute; the decoded substitute then
                     occupies the original's slot
    """
    tracks_refs = True

    def __init__(self, structural: Serializer) -> None:
        self.structural = structural
        self.type_descriptor = structural.type_descriptor

    def encode(self, value: Any, ctx: "WriteContext") -> None:
        replacement = ctx.substitutions.replace(value)
        if replacement is value:
            ctx.writer.write_int8(SubstitutionMarker.SAME)
            self.structural.encode(value, ctx)
        else:
            ctx.writer.write_int8(SubstitutionMarker.REPLACED)
            ctx.write_ref(replacement)

    def decode(self, ctx: "ReadContext") -> Any:
        marker = ctx.reader.read_int8()
        if marker == SubstitutionMarker.SAME:
            obj = self.structural.decode(ctx)
            return ctx.substitutions.resolve(obj)

        if marker != SubstitutionMarker.REPLACED:
            raise MalformedInput(f"Unknown substitution marker {marker}")

        slot = ctx.current_slot
        forwarded = slot is not None and ctx.reader.peek_int8() == RefFlag.NEW_VALUE
        if forwarded:
            ctx.refs.forward(slot, ctx.refs.next_slot)
        try:
            return ctx.read_ref()
        finally:
            if forwarded:
                ctx.refs.release_forward(slot)
