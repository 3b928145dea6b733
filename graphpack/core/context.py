import logging
from typing import Any, TYPE_CHECKING

from graphpack.core.errors import DepthLimitExceeded, MalformedInput, TruncatedInput, UnknownTypeTag
from graphpack.core.models.config import CodecConfig, TagMode
from graphpack.core.ports.serializer import Serializer
from graphpack.core.resolver.references import ReferenceReader, ReferenceWriter
from graphpack.core.resolver.substitution import SubstitutionTable
from graphpack.core.wire.buffer import BinaryReader, BinaryWriter
from graphpack.core.wire.markers import NAMED_TYPE_ID, RefFlag

if TYPE_CHECKING:
    from graphpack.core.resolver.registry import TypeRegistry


class WriteContext:
    """
    State of one top-level encode call.

    Every value, top-level or nested, goes through write_ref(), which
    writes the reference marker, then the type tag, then lets the
    serializer write the payload:

        NULL
        REF       varuint slot
        NEW_VALUE type payload    (first sighting of a tracked value)
        VALUE     type payload    (untracked value, or tracking disabled)
    """
    def __init__(self, registry: "TypeRegistry", config: CodecConfig) -> None:
        self.registry = registry
        self.ref_tracking = config.ref_tracking
        self.tag_mode = config.tag_mode
        self.max_depth = config.max_depth

        self.writer = BinaryWriter()
        self.refs = ReferenceWriter()
        self.substitutions = SubstitutionTable(registry.substitution_for)
        self.depth = 0

    def write_ref(self, value: Any, serializer: Serializer | None = None) -> None:
        if value is None:
            self.writer.write_int8(RefFlag.NULL)
            return

        if serializer is None:
            serializer = self.registry.resolve_by_type(type(value))

        if self.ref_tracking and serializer.tracks_refs:
            sighting = self.refs.track(value)
            if not sighting.first_seen:
                self.writer.write_int8(RefFlag.REF)
                self.writer.write_varuint(sighting.slot)
                return
            self.writer.write_int8(RefFlag.NEW_VALUE)
        else:
            self.writer.write_int8(RefFlag.VALUE)

        if self.depth >= self.max_depth:
            raise DepthLimitExceeded(self.max_depth)
        self.depth += 1
        try:
            self.write_type(serializer)
            serializer.encode(value, self)
        finally:
            self.depth -= 1

    def write_sized_ref(self, value: Any, serializer: Serializer | None = None) -> None:
        """
        Write a value framed by its byte length and the number of reference
        slots it introduces, so a reader can step over it without knowing
        its type:

            varuint size, varuint new slots, value
        """
        outer = self.writer
        first = len(self.refs)
        self.writer = BinaryWriter()
        try:
            self.write_ref(value, serializer)
            body = self.writer.getvalue()
        finally:
            self.writer = outer
        outer.write_varuint(len(body))
        outer.write_varuint(len(self.refs) - first)
        outer.write_bytes(body)

    def write_type(self, serializer: Serializer) -> None:
        descriptor = serializer.type_descriptor
        if self.tag_mode is TagMode.named:
            self.writer.write_string(descriptor.name)
            return

        type_id = self.registry.type_id_of(descriptor)
        if type_id is None:
            # Permissive-mode types own no id: they travel as the escape id
            # followed by their tag, the one place an id-mode payload holds a tag.
            self.writer.write_uint32(NAMED_TYPE_ID)
            self.writer.write_string(descriptor.name)
        else:
            self.writer.write_uint32(type_id)

    def getvalue(self) -> bytes:
        return self.writer.getvalue()


class ReadContext:
    """
    State of one top-level decode call.

    Mirrors WriteContext.write_ref(): read_ref() consumes a marker and, for
    a new value, reserves its slot before the payload is decoded. The slot
    of the value currently being decoded is exposed to serializers through
    reference() and current_slot.
    """
    def __init__(
        self,
        registry: "TypeRegistry",
        data: bytes | bytearray | memoryview,
        ref_tracking: bool,
        tag_mode: TagMode,
        max_depth: int,
    ) -> None:
        self.registry = registry
        self.ref_tracking = ref_tracking
        self.tag_mode = tag_mode
        self.max_depth = max_depth

        self.reader = BinaryReader(data)
        self.refs = ReferenceReader()
        self.substitutions = SubstitutionTable(registry.substitution_for)
        self.depth = 0
        self._slots: list[int | None] = []
        self._logger = logging.getLogger("graphpack.context")

    @property
    def current_slot(self) -> int | None:
        return self._slots[-1] if self._slots else None

    def reference(self, obj: Any) -> None:
        """Publish the instance being decoded to its slot, if it has one."""
        slot = self.current_slot
        if slot is not None:
            self.refs.populate(slot, obj)

    def read_ref(self) -> Any:
        flag = self.reader.read_int8()
        if flag == RefFlag.NULL:
            return None

        if flag == RefFlag.REF:
            if not self.ref_tracking:
                raise MalformedInput("Back-reference in a payload written without reference tracking")
            return self.refs.get(self.reader.read_varuint())

        slot: int | None
        if flag == RefFlag.NEW_VALUE:
            if not self.ref_tracking:
                raise MalformedInput("New-value marker in a payload written without reference tracking")
            slot = self.refs.reserve()
        elif flag == RefFlag.VALUE:
            slot = None
        else:
            raise MalformedInput(f"Unknown reference marker {flag}")

        if self.depth >= self.max_depth:
            raise DepthLimitExceeded(self.max_depth)
        self.depth += 1
        self._slots.append(slot)
        try:
            serializer = self.read_type()
            value = serializer.decode(self)
        finally:
            self._slots.pop()
            self.depth -= 1

        if slot is not None:
            self.refs.populate(slot, value)
        return value

    def read_sized_ref(self) -> Any:
        size = self.reader.read_varuint()
        count = self.reader.read_varuint()
        end = self.reader.position + size
        if size > self.reader.remaining:
            raise TruncatedInput(size, self.reader.remaining)
        first = self.refs.next_slot

        value = self.read_ref()
        if self.reader.position != end or self.refs.next_slot != first + count:
            raise MalformedInput("Framed value does not match its declared size")
        return value

    def skip_sized_ref(self) -> None:
        """
        Step over a framed value the receiver has no field for.

        The value is still decoded when its types are known, so that later
        back-references into it resolve. When a type is unknown the bytes
        are skipped and the slots the value would have taken are reserved
        unpopulated, keeping slot numbering aligned with the sender.
        """
        size = self.reader.read_varuint()
        count = self.reader.read_varuint()
        start = self.reader.position
        if size > self.reader.remaining:
            raise TruncatedInput(size, self.reader.remaining)
        first = self.refs.next_slot

        try:
            self.read_ref()
        except UnknownTypeTag as exc:
            self._logger.debug("Skipping %d byte(s) of undecodable field: %s", size, exc)
        else:
            if self.reader.position == start + size and self.refs.next_slot == first + count:
                return
            raise MalformedInput("Framed value does not match its declared size")

        self.reader.seek(start + size)
        while self.refs.next_slot < first + count:
            self.refs.reserve()

    def read_type(self) -> Serializer:
        if self.tag_mode is TagMode.named:
            return self.registry.resolve_by_tag(self.reader.read_string())

        type_id = self.reader.read_uint32()
        if type_id == NAMED_TYPE_ID:
            return self.registry.resolve_by_tag(self.reader.read_string())
        return self.registry.resolve_by_id(type_id)
