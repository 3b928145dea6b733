import dataclasses
import enum
import importlib
import logging
from dataclasses import dataclass
from typing import Any, Callable, Sequence

import numpy as np

from graphpack.core.errors import (
    DuplicateRegistration,
    UnknownTypeTag,
    UnregisteredType,
    UnsupportedType,
)
from graphpack.core.models.types import (
    FIRST_USER_TYPE_ID,
    TypeDescriptor,
    TypeKind,
)
from graphpack.core.ports.serializer import Serializer
from graphpack.core.resolver.substitution import SubstitutionHooks, declared_hooks
from graphpack.core.serializers.arrays import StringArraySerializer, TypedArraySerializer
from graphpack.core.serializers.collections import (
    FrozenSetSerializer,
    ListSerializer,
    MapSerializer,
    SetSerializer,
    TupleSerializer,
)
from graphpack.core.serializers.objects import (
    SCALAR_BASES,
    BuiltinSubclassSerializer,
    EnumSerializer,
    NamedTupleSerializer,
    builtin_base,
    opaque_base,
)
from graphpack.core.serializers.primitives import (
    BinarySerializer,
    PrimitiveSerializer,
    StringSerializer,
)
from graphpack.core.serializers.structs import ObjectSerializer, StructSerializer, declares_state
from graphpack.core.serializers.substitute import SubstituteSerializer

FIRST_AUTO_TYPE_ID = 256


def default_tag(cls: type) -> str:
    """Importable name of a class, used as its tag when none is given."""
    return f"{cls.__module__}:{cls.__qualname__}"


def import_tag(tag: str) -> type | None:
    module_name, sep, qualname = tag.partition(":")
    if not sep or not module_name or not qualname:
        return None
    try:
        target: Any = importlib.import_module(module_name)
        for part in qualname.split("."):
            target = getattr(target, part)
    except (ImportError, AttributeError):
        return None
    return target if isinstance(target, type) else None


@dataclass
class Registration:
    tag: str
    type_id: int
    serializer: Serializer
    cls: type | None = None
    derived: bool = False
    """True when the serializer was derived from the class, not supplied."""


class TypeRegistry:
    """
    Maps runtime types and wire identifiers to Serializers.

    Each registration binds a class (or a declarative struct descriptor) to
    a stable tag string and a numeric id. Tags are used in named-tag mode
    and are self-describing; ids are used in registered-id mode, are
    compact, and require both endpoints to register the same types in
    agreement (auto-assigned ids follow registration order).

    Dispatch by runtime type is an exact-type table: a subclass never
    inherits the serializer, nor the substitution hooks, of its base.
    When registration is not required, unregistered classes fall back to a
    structural serializer derived from their fields, tagged with their
    importable name so that the receiving side can locate the class.

    Locating a class by its tag imports the module the payload names and
    builds an instance without running __init__, much as pickle does: a
    permissive registry must only decode trusted payloads. `import_prefixes`
    narrows the modules a payload may name to the given packages and their
    submodules; None allows any module.

    A registry is populated before use and treated as read-only while
    encode/decode calls are in flight; registering concurrently with calls
    is not supported.
    """
    def __init__(
        self,
        require_registration: bool = True,
        import_prefixes: Sequence[str] | None = None,
    ) -> None:
        self.require_registration = require_registration
        self.import_prefixes = tuple(import_prefixes) if import_prefixes is not None else None

        self._by_type: dict[type, Registration] = {}
        self._by_tag: dict[str, Registration] = {}
        self._by_id: dict[int, Registration] = {}
        self._derived: dict[type, Serializer] = {}
        self._derived_tags: dict[str, Serializer] = {}
        self._by_descriptor: dict[TypeDescriptor, Serializer] = {}
        self._substitutions: dict[type, SubstitutionHooks] = {}
        self._builtins: dict[TypeKind, Serializer] = {}
        self._next_id = FIRST_AUTO_TYPE_ID

        self._logger = logging.getLogger("graphpack.registry")
        self._install_builtins()

    def _install_builtins(self) -> None:
        for kind in TypeKind:
            if kind.is_primitive:
                self._builtins[kind] = PrimitiveSerializer(kind)

        self._builtins[TypeKind.STRING] = StringSerializer()
        self._builtins[TypeKind.BINARY] = BinarySerializer()
        self._builtins[TypeKind.TYPED_ARRAY] = TypedArraySerializer()
        self._builtins[TypeKind.STRING_ARRAY] = StringArraySerializer()
        self._builtins[TypeKind.LIST] = ListSerializer()
        self._builtins[TypeKind.TUPLE] = TupleSerializer()
        self._builtins[TypeKind.SET] = SetSerializer()
        self._builtins[TypeKind.FROZENSET] = FrozenSetSerializer()
        self._builtins[TypeKind.MAP] = MapSerializer()

        self._builtin_types: dict[type, Serializer] = {
            bool: self._builtins[TypeKind.BOOL],
            int: self._builtins[TypeKind.INT64],
            float: self._builtins[TypeKind.FLOAT64],
            str: self._builtins[TypeKind.STRING],
            bytes: self._builtins[TypeKind.BINARY],
            list: self._builtins[TypeKind.LIST],
            tuple: self._builtins[TypeKind.TUPLE],
            set: self._builtins[TypeKind.SET],
            frozenset: self._builtins[TypeKind.FROZENSET],
            dict: self._builtins[TypeKind.MAP],
            np.ndarray: self._builtins[TypeKind.TYPED_ARRAY],
            np.bool_: self._builtins[TypeKind.BOOL],
            np.int8: self._builtins[TypeKind.INT8],
            np.int16: self._builtins[TypeKind.INT16],
            np.int32: self._builtins[TypeKind.INT32],
            np.int64: self._builtins[TypeKind.INT64],
            np.float32: self._builtins[TypeKind.FLOAT32],
            np.float64: self._builtins[TypeKind.FLOAT64],
        }

        self._builtin_names: dict[str, Serializer] = {
            kind.name.lower(): serializer for kind, serializer in self._builtins.items()
        }

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        cls: type,
        tag_or_id: str | int | None = None,
        serializer: Serializer | None = None,
    ) -> Registration:
        """
        Bind `cls` to a wire identity and a serializer.

        `tag_or_id` is a tag string or a numeric id (>= 64); the missing
        half is derived (importable class name, next id in registration
        order). Without a serializer, one is derived from the class:
        compact struct for dataclasses, named-field object otherwise,
        wrapped for substitution when the class declares hooks.

        Registering an identical binding again returns the existing
        registration. A supplied serializer may replace a derived one, but
        never another supplied serializer; that conflict, like any other
        conflicting binding, raises DuplicateRegistration.
        """
        if cls in self._builtin_types:
            raise DuplicateRegistration(f"{cls.__qualname__} is a built-in type", cls=cls)

        tag, type_id = self._split_identity(tag_or_id, cls)

        existing = self._by_type.get(cls)
        if existing is not None:
            same_tag = isinstance(tag_or_id, str) and tag_or_id == existing.tag
            same_id = isinstance(tag_or_id, int) and tag_or_id == existing.type_id
            if tag_or_id is not None and not (same_tag or same_id):
                raise DuplicateRegistration(
                    f"{cls.__qualname__} is already registered as "
                    f"{existing.tag!r}/{existing.type_id}",
                    cls=cls,
                    tag=tag_or_id,
                )
            if serializer is None or serializer is existing.serializer:
                return existing
            if not existing.derived:
                raise DuplicateRegistration(
                    f"{cls.__qualname__} is already bound to another serializer",
                    cls=cls,
                    tag=existing.tag,
                )
            tag, type_id = existing.tag, existing.type_id

        derived = serializer is None
        if serializer is None:
            serializer = self._derive_serializer(cls, tag)

        registration = Registration(
            tag=tag,
            type_id=type_id,
            serializer=serializer,
            cls=cls,
            derived=derived,
        )
        self._bind(registration, replacing=existing)
        self._by_type[cls] = registration
        self._forget_derived(cls)
        self._logger.debug("Registered %s as %r (id %d)", cls.__qualname__, tag, type_id)
        return registration

    def register_descriptor(self, descriptor: TypeDescriptor) -> Serializer:
        """
        Register a declarative struct and the structs nested in its fields.

        Values of the struct are dicts keyed by field name. Returns the
        struct's serializer.
        """
        if descriptor.kind is not TypeKind.STRUCT:
            return self.resolve_by_descriptor(descriptor)

        for nested in reversed(descriptor.nested_structs()):
            if nested.tag not in self._by_tag:
                self.register_descriptor(nested)

        existing = self._by_tag.get(descriptor.tag)
        if existing is not None:
            if existing.cls is None and existing.serializer.type_descriptor == descriptor:
                return existing.serializer
            raise DuplicateRegistration(
                f"Tag {descriptor.tag!r} is already bound", tag=descriptor.tag
            )

        field_serializers = [
            self.resolve_by_descriptor(f.descriptor) if f.descriptor is not None else None
            for f in descriptor.fields
        ]
        serializer = StructSerializer(descriptor, None, field_serializers)
        registration = Registration(
            tag=descriptor.tag,  # type: ignore[arg-type]
            type_id=self._allocate_id(),
            serializer=serializer,
        )
        self._bind(registration, replacing=None)
        self._logger.debug(
            "Registered struct %r with %d field(s)", descriptor.tag, len(descriptor.fields)
        )
        return serializer

    def register_substitution(
        self,
        cls: type,
        replace: Callable[[Any], Any] | None = None,
        resolve: Callable[[Any], Any] | None = None,
    ) -> None:
        """
        Attach substitution hooks to exactly `cls` (never its subclasses).
        """
        hooks = SubstitutionHooks(replace=replace, resolve=resolve)
        if not hooks:
            raise ValueError("At least one of replace/resolve is required")
        self._substitutions[cls] = hooks
        self._forget_derived(cls)

        registration = self._by_type.get(cls)
        if registration is not None and registration.derived:
            if not isinstance(registration.serializer, SubstituteSerializer):
                registration.serializer = SubstituteSerializer(registration.serializer)
        self._logger.debug("Registered substitution hooks for %s", cls.__qualname__)

    def _split_identity(self, tag_or_id: str | int | None, cls: type) -> tuple[str, int]:
        if isinstance(tag_or_id, bool):
            raise TypeError("A type id must be an int, not a bool")
        if isinstance(tag_or_id, int):
            if tag_or_id < FIRST_USER_TYPE_ID or tag_or_id > 0xFFFFFFFF:
                raise ValueError(
                    f"Type id {tag_or_id} is outside the user range "
                    f"[{FIRST_USER_TYPE_ID}, {0xFFFFFFFF}]"
                )
            return default_tag(cls), tag_or_id
        if isinstance(tag_or_id, str):
            if not tag_or_id:
                raise ValueError("A type tag must not be empty")
            return tag_or_id, -1
        return default_tag(cls), -1

    def _allocate_id(self) -> int:
        while self._next_id in self._by_id:
            self._next_id += 1
        type_id = self._next_id
        self._next_id += 1
        return type_id

    def _bind(self, registration: Registration, replacing: Registration | None) -> None:
        tag = registration.tag
        if tag in self._builtin_names:
            raise DuplicateRegistration(f"Tag {tag!r} is reserved for a built-in kind", tag=tag)

        bound = self._by_tag.get(tag)
        if bound is not None and bound is not replacing:
            raise DuplicateRegistration(
                f"Tag {tag!r} is already bound to another type",
                cls=registration.cls,
                tag=tag,
            )

        if registration.type_id < 0:
            registration.type_id = self._allocate_id()
        bound = self._by_id.get(registration.type_id)
        if bound is not None and bound is not replacing:
            raise DuplicateRegistration(
                f"Type id {registration.type_id} is already bound to another type",
                cls=registration.cls,
                tag=registration.type_id,
            )

        if replacing is not None:
            self._by_tag.pop(replacing.tag, None)
            self._by_id.pop(replacing.type_id, None)
        self._by_tag[tag] = registration
        self._by_id[registration.type_id] = registration

    def _forget_derived(self, cls: type) -> None:
        if self._derived.pop(cls, None) is not None:
            self._derived_tags.pop(default_tag(cls), None)

    def _derive_serializer(self, cls: type, tag: str) -> Serializer:
        structural: Serializer
        base = builtin_base(cls)
        hooks = self.substitution_for(cls)
        if issubclass(cls, enum.Enum):
            structural = EnumSerializer(cls, tag)
        elif base is tuple and hasattr(cls, "_fields"):
            structural = NamedTupleSerializer(cls, tag)
        elif base is not None:
            scalar = self._builtin_types[base] if base in SCALAR_BASES else None
            structural = BuiltinSubclassSerializer(cls, tag, base, scalar)
        elif dataclasses.is_dataclass(cls) and not declares_state(cls):
            structural = StructSerializer.for_dataclass(cls, tag)
        elif hooks is None and not declares_state(cls) and opaque_base(cls) is not None:
            raise UnsupportedType(cls)
        else:
            structural = ObjectSerializer(cls, tag)
        if hooks is not None:
            return SubstituteSerializer(structural)
        return structural

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def substitution_for(self, cls: type) -> SubstitutionHooks | None:
        """Hooks of exactly `cls`: explicit registration first, then its own body."""
        hooks = self._substitutions.get(cls)
        if hooks is not None:
            return hooks
        return declared_hooks(cls)

    def resolve_by_type(self, cls: type) -> Serializer:
        serializer = self._builtin_types.get(cls)
        if serializer is not None:
            return serializer

        registration = self._by_type.get(cls)
        if registration is not None:
            return registration.serializer

        if self.require_registration:
            raise UnregisteredType(cls)

        serializer = self._derived.get(cls)
        if serializer is None:
            serializer = self._derive_serializer(cls, default_tag(cls))
            self._derived[cls] = serializer
            self._derived_tags[serializer.type_descriptor.tag] = serializer  # type: ignore[index]
            self._logger.debug("Derived structural serializer for %s", cls.__qualname__)
        return serializer

    def resolve_by_descriptor(self, descriptor: TypeDescriptor) -> Serializer:
        """
        Serializer for a declared descriptor (struct fields, registered
        front-end types).
        """
        cached = self._by_descriptor.get(descriptor)
        if cached is not None:
            return cached

        kind = descriptor.kind
        serializer: Serializer
        if kind is TypeKind.STRUCT:
            return self.resolve_by_tag(descriptor.tag)  # type: ignore[arg-type]
        if kind is TypeKind.TYPED_ARRAY and descriptor.element is not None:
            serializer = TypedArraySerializer(descriptor.element)  # type: ignore[arg-type]
        elif kind is TypeKind.LIST and descriptor.element is not None:
            serializer = ListSerializer(self.resolve_by_descriptor(descriptor.element))  # type: ignore[arg-type]
        elif kind is TypeKind.MAP and (descriptor.key is not None or descriptor.value is not None):
            serializer = MapSerializer(
                self.resolve_by_descriptor(descriptor.key) if descriptor.key else None,
                self.resolve_by_descriptor(descriptor.value) if descriptor.value else None,
            )
        else:
            serializer = self._builtins[kind]

        self._by_descriptor[descriptor] = serializer
        return serializer

    def resolve_by_tag(self, tag: str) -> Serializer:
        serializer = self._builtin_names.get(tag)
        if serializer is not None:
            return serializer

        registration = self._by_tag.get(tag)
        if registration is not None:
            return registration.serializer

        if not self.require_registration:
            serializer = self._derived_tags.get(tag)
            if serializer is not None:
                return serializer
            if self.may_import(tag):
                cls = import_tag(tag)
                if cls is not None and default_tag(cls) == tag:
                    self._logger.debug("Resolved tag %r by import", tag)
                    return self.resolve_by_type(cls)
            else:
                self._logger.debug("Tag %r is outside the importable modules", tag)

        raise UnknownTypeTag(tag)

    def may_import(self, tag: str) -> bool:
        if self.import_prefixes is None:
            return True
        module_name = tag.partition(":")[0]
        return any(
            module_name == prefix or module_name.startswith(prefix + ".")
            for prefix in self.import_prefixes
        )

    def resolve_by_id(self, type_id: int) -> Serializer:
        try:
            return self._builtins[TypeKind(type_id)]
        except (ValueError, KeyError):
            pass

        registration = self._by_id.get(type_id)
        if registration is None:
            raise UnknownTypeTag(type_id)
        return registration.serializer

    def type_id_of(self, descriptor: TypeDescriptor) -> int | None:
        """Numeric wire id of a descriptor; None for unregistered structs."""
        if descriptor.kind is not TypeKind.STRUCT:
            return int(descriptor.kind)
        registration = self._by_tag.get(descriptor.tag)  # type: ignore[arg-type]
        return registration.type_id if registration is not None else None

    def is_registered(self, cls: type) -> bool:
        return cls in self._by_type or cls in self._builtin_types
