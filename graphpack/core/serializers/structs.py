import dataclasses
import logging
from typing import Any, Callable, Sequence, TYPE_CHECKING

from graphpack.core.errors import InstanceStateFailure, MalformedInput
from graphpack.core.models.types import TypeDescriptor, TypeKind, Type
from graphpack.core.ports.serializer import Serializer
from graphpack.core.wire.markers import ObjectLayout

if TYPE_CHECKING:
    from graphpack.core.context import ReadContext, WriteContext


def instance_field_names(value: Any) -> list[str]:
    """
    Enumerate the fields of an arbitrary object: dataclass fields in
    declaration order, otherwise instance attributes (__dict__ first,
    then any populated __slots__ along the MRO).
    """
    if dataclasses.is_dataclass(value):
        return [f.name for f in dataclasses.fields(value)]

    names: list[str] = list(getattr(value, "__dict__", {}))
    for klass in type(value).__mro__:
        slots = vars(klass).get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for slot in slots:
            if slot in ("__dict__", "__weakref__") or slot in names:
                continue
            if hasattr(value, slot):
                names.append(slot)
    return names


def new_instance(cls: type) -> Any:
    # Instances are created without running __init__: fields are assigned
    # from the payload, possibly after the instance was already referenced.
    try:
        return cls.__new__(cls)
    except Exception as exc:
        raise InstanceStateFailure(cls, "construct") from exc


def declares_state(cls: type) -> bool:
    """
    True when `cls` customises its state with __getstate__ or __setstate__.

    Slotted frozen dataclasses carry generated hooks that only mirror their
    fields; those do not count.
    """
    for name in ("__getstate__", "__setstate__"):
        hook = getattr(cls, name, None)
        if hook is None or hook is object.__getstate__:
            continue
        if getattr(hook, "__module__", None) != "dataclasses":
            return True
    return False


def write_attributes(value: Any, ctx: "WriteContext") -> None:
    names = instance_field_names(value)
    ctx.writer.write_varuint(len(names))
    for name in names:
        ctx.writer.write_string(name)
        ctx.write_ref(getattr(value, name))


def read_attributes(obj: Any, ctx: "ReadContext", logger: logging.Logger) -> None:
    count = ctx.reader.read_varuint()
    for _ in range(count):
        name = ctx.reader.read_string()
        item = ctx.read_ref()
        try:
            object.__setattr__(obj, name, item)
        except AttributeError:
            logger.debug("Skipping field %r not settable on %s", name, type(obj).__qualname__)


class StructSerializer:
    """
    Compact named struct.

    Wire shape: varuint field count, then each declared field in the order
    fixed at registration, framed by its byte length and the number of
    reference slots it introduces (see WriteContext.write_sized_ref). Field
    names are not written.

    Values are instances of `cls` when given, otherwise dicts keyed by
    field name (declarative structs registered from a TypeDescriptor).

    Decoding tolerates a sender with a different field list: trailing
    fields the receiver does not declare are stepped over by their frame,
    with their slots still reserved so that numbering stays aligned with
    the sender. Declared fields the sender did not send get their dataclass
    default, or None.
    """
    tracks_refs = True

    def __init__(
        self,
        descriptor: TypeDescriptor,
        cls: type | None = None,
        field_serializers: Sequence[Serializer | None] | None = None,
    ) -> None:
        if descriptor.kind is not TypeKind.STRUCT:
            raise ValueError(f"StructSerializer requires a struct descriptor, got {descriptor.kind!r}")

        self.type_descriptor = descriptor
        self.cls = cls
        self._names = [f.name for f in descriptor.fields]
        if field_serializers is None:
            field_serializers = [None] * len(self._names)
        if len(field_serializers) != len(self._names):
            raise ValueError("One serializer (or None) is required per declared field")
        self._serializers = list(field_serializers)
        self._defaults = self._collect_defaults(cls)
        self._logger = logging.getLogger("graphpack.serializers.struct")

    @classmethod
    def for_dataclass(cls, target: type, tag: str) -> "StructSerializer":
        descriptor = Type.struct(tag, {f.name: None for f in dataclasses.fields(target)})
        return cls(descriptor, target)

    @staticmethod
    def _collect_defaults(target: type | None) -> dict[str, Callable[[], Any]]:
        if target is None or not dataclasses.is_dataclass(target):
            return {}

        defaults: dict[str, Callable[[], Any]] = {}
        for f in dataclasses.fields(target):
            if f.default is not dataclasses.MISSING:
                defaults[f.name] = lambda value=f.default: value
            elif f.default_factory is not dataclasses.MISSING:
                defaults[f.name] = f.default_factory
        return defaults

    @property
    def field_names(self) -> list[str]:
        return list(self._names)

    def encode(self, value: Any, ctx: "WriteContext") -> None:
        ctx.writer.write_varuint(len(self._names))
        if self.cls is None:
            for name, serializer in zip(self._names, self._serializers):
                ctx.write_sized_ref(value.get(name), serializer)
        else:
            for name, serializer in zip(self._names, self._serializers):
                ctx.write_sized_ref(getattr(value, name, None), serializer)

    def decode(self, ctx: "ReadContext") -> Any:
        count = ctx.reader.read_varuint()

        if self.cls is None:
            obj: Any = {}
            assign = obj.__setitem__
        else:
            obj = new_instance(self.cls)

            def assign(name: str, item: Any) -> None:
                object.__setattr__(obj, name, item)

        ctx.reference(obj)

        known = min(count, len(self._names))
        for name in self._names[:known]:
            assign(name, ctx.read_sized_ref())

        if count > known:
            self._logger.debug(
                "Skipping %d trailing field(s) of %s", count - known, self.type_descriptor.tag
            )
            for _ in range(count - known):
                ctx.skip_sized_ref()

        for name in self._names[known:]:
            default = self._defaults.get(name)
            assign(name, default() if default is not None else None)

        return obj


class ObjectSerializer:
    """
    Default structural serializer for classes without declared fields.

    Wire shape: a layout byte, then either

        FIELDS  varuint field count, then (name, value) pairs
        STATE   the value returned by __getstate__, as one full value

    Field names travel with the payload, so both ends may hold different
    attribute sets; attributes the receiving class cannot hold are skipped.

    Classes that customise __getstate__ or __setstate__ use the STATE
    layout. The instance is referenced before its state is decoded, then
    restored the way pickle restores it: through __setstate__ when the
    class has one, otherwise by updating the instance dict and, for a
    (dict, slots) pair, the slot attributes.
    """
    tracks_refs = True

    def __init__(self, cls: type, tag: str) -> None:
        self.cls = cls
        self.type_descriptor = Type.struct(tag)
        self.stateful = declares_state(cls)
        self._logger = logging.getLogger("graphpack.serializers.object")

    def encode(self, value: Any, ctx: "WriteContext") -> None:
        if self.stateful:
            ctx.writer.write_uint8(ObjectLayout.STATE)
            ctx.write_ref(self._get_state(value))
        else:
            ctx.writer.write_uint8(ObjectLayout.FIELDS)
            write_attributes(value, ctx)

    def decode(self, ctx: "ReadContext") -> Any:
        layout = ctx.reader.read_uint8()
        if layout not in (ObjectLayout.FIELDS, ObjectLayout.STATE):
            raise MalformedInput(f"Unknown object layout {layout}")

        obj = new_instance(self.cls)
        ctx.reference(obj)
        if layout == ObjectLayout.FIELDS:
            read_attributes(obj, ctx, self._logger)
        else:
            self._set_state(obj, ctx.read_ref())
        return obj

    def _get_state(self, value: Any) -> Any:
        try:
            return value.__getstate__()
        except Exception as exc:
            raise InstanceStateFailure(self.cls, "read the state of") from exc

    def _set_state(self, obj: Any, state: Any) -> None:
        setstate = getattr(obj, "__setstate__", None)
        try:
            if setstate is not None:
                setstate(state)
            else:
                _restore_state(obj, state)
        except Exception as exc:
            raise InstanceStateFailure(self.cls, "restore the state of") from exc


def _restore_state(obj: Any, state: Any) -> None:
    slots = None
    if isinstance(state, tuple) and len(state) == 2:
        state, slots = state
    if state:
        obj.__dict__.update(state)
    if slots:
        for name, item in slots.items():
            object.__setattr__(obj, name, item)
