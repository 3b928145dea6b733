from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Mapping


class TypeKind(IntEnum):
    """
    Wire-level kind of a value. The numeric value doubles as the reserved
    type id of the built-in kind in registered-id mode, and the lowercase
    member name is its tag in named-tag mode.
    """
    BOOL = 1
    INT8 = 2
    INT16 = 3
    INT32 = 4
    INT64 = 5
    FLOAT32 = 6
    FLOAT64 = 7
    STRING = 8
    BINARY = 9
    TYPED_ARRAY = 10
    STRING_ARRAY = 11
    LIST = 12
    TUPLE = 13
    SET = 14
    MAP = 15
    STRUCT = 16
    FROZENSET = 17

    @property
    def is_primitive(self) -> bool:
        return self in PRIMITIVE_KINDS


PRIMITIVE_KINDS = frozenset({
    TypeKind.BOOL,
    TypeKind.INT8,
    TypeKind.INT16,
    TypeKind.INT32,
    TypeKind.INT64,
    TypeKind.FLOAT32,
    TypeKind.FLOAT64,
})

# Ids below this bound are reserved for built-in kinds.
FIRST_USER_TYPE_ID = 64


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    name: str
    descriptor: "TypeDescriptor | None" = None
    """
    Declared type of the field, or None to dispatch on the runtime type
    of the value.
    """


@dataclass(frozen=True, slots=True)
class TypeDescriptor:
    """
    Identifies a wire type.

    Variants are distinguished by `kind`:
        - primitives, STRING, BINARY, TUPLE, SET, FROZENSET, STRING_ARRAY:
          no payload
        - TYPED_ARRAY: `element` is the primitive element kind, or None
          when the kind is taken from the runtime array
        - LIST: `element` is an optional element descriptor
        - MAP: optional `key` / `value` descriptors
        - STRUCT: `tag` and the ordered `fields`
    """
    kind: TypeKind
    element: "TypeKind | TypeDescriptor | None" = None
    key: "TypeDescriptor | None" = None
    value: "TypeDescriptor | None" = None
    tag: str | None = None
    fields: tuple[FieldDescriptor, ...] = field(default=())

    def __post_init__(self) -> None:
        if self.kind is TypeKind.STRUCT and not self.tag:
            raise ValueError("A struct descriptor requires a tag")
        if self.kind is TypeKind.TYPED_ARRAY and self.element is not None:
            if not isinstance(self.element, TypeKind) or not self.element.is_primitive:
                raise ValueError(
                    f"Typed array element must be a primitive kind, got {self.element!r}"
                )

    @property
    def name(self) -> str:
        """Tag written on the wire in named-tag mode."""
        if self.kind is TypeKind.STRUCT:
            return self.tag  # type: ignore[return-value]
        return self.kind.name.lower()

    def nested_structs(self) -> list["TypeDescriptor"]:
        """Struct descriptors reachable from this one, depth first."""
        found: list[TypeDescriptor] = []
        children: list[Any] = [self.element, self.key, self.value]
        children.extend(f.descriptor for f in self.fields)
        for child in children:
            if isinstance(child, TypeDescriptor):
                if child.kind is TypeKind.STRUCT:
                    found.append(child)
                found.extend(child.nested_structs())
        return found


class Type:
    """
    Declarative builder used by schema front-ends to describe user types
    without hand-writing serializers.

        point = Type.struct("example.point", {
            "x": Type.int32(),
            "y": Type.int32(),
            "tags": Type.string_array(),
        })
    """

    @staticmethod
    def bool() -> TypeDescriptor:
        return TypeDescriptor(TypeKind.BOOL)

    @staticmethod
    def int8() -> TypeDescriptor:
        return TypeDescriptor(TypeKind.INT8)

    @staticmethod
    def int16() -> TypeDescriptor:
        return TypeDescriptor(TypeKind.INT16)

    @staticmethod
    def int32() -> TypeDescriptor:
        return TypeDescriptor(TypeKind.INT32)

    @staticmethod
    def int64() -> TypeDescriptor:
        return TypeDescriptor(TypeKind.INT64)

    @staticmethod
    def float32() -> TypeDescriptor:
        return TypeDescriptor(TypeKind.FLOAT32)

    @staticmethod
    def float64() -> TypeDescriptor:
        return TypeDescriptor(TypeKind.FLOAT64)

    @staticmethod
    def string() -> TypeDescriptor:
        return TypeDescriptor(TypeKind.STRING)

    @staticmethod
    def binary() -> TypeDescriptor:
        return TypeDescriptor(TypeKind.BINARY)

    @staticmethod
    def typed_array(element: TypeKind | None = None) -> TypeDescriptor:
        return TypeDescriptor(TypeKind.TYPED_ARRAY, element=element)

    @staticmethod
    def bool_array() -> TypeDescriptor:
        return TypeDescriptor(TypeKind.TYPED_ARRAY, element=TypeKind.BOOL)

    @staticmethod
    def int8_array() -> TypeDescriptor:
        return TypeDescriptor(TypeKind.TYPED_ARRAY, element=TypeKind.INT8)

    @staticmethod
    def int16_array() -> TypeDescriptor:
        return TypeDescriptor(TypeKind.TYPED_ARRAY, element=TypeKind.INT16)

    @staticmethod
    def int32_array() -> TypeDescriptor:
        return TypeDescriptor(TypeKind.TYPED_ARRAY, element=TypeKind.INT32)

    @staticmethod
    def int64_array() -> TypeDescriptor:
        return TypeDescriptor(TypeKind.TYPED_ARRAY, element=TypeKind.INT64)

    @staticmethod
    def float32_array() -> TypeDescriptor:
        return TypeDescriptor(TypeKind.TYPED_ARRAY, element=TypeKind.FLOAT32)

    @staticmethod
    def float64_array() -> TypeDescriptor:
        return TypeDescriptor(TypeKind.TYPED_ARRAY, element=TypeKind.FLOAT64)

    @staticmethod
    def string_array() -> TypeDescriptor:
        return TypeDescriptor(TypeKind.STRING_ARRAY)

    @staticmethod
    def list(element: TypeDescriptor | None = None) -> TypeDescriptor:
        return TypeDescriptor(TypeKind.LIST, element=element)

    @staticmethod
    def tuple() -> TypeDescriptor:
        return TypeDescriptor(TypeKind.TUPLE)

    @staticmethod
    def set() -> TypeDescriptor:
        return TypeDescriptor(TypeKind.SET)

    @staticmethod
    def frozenset() -> TypeDescriptor:
        return TypeDescriptor(TypeKind.FROZENSET)

    @staticmethod
    def map(
        key: TypeDescriptor | None = None,
        value: TypeDescriptor | None = None,
    ) -> TypeDescriptor:
        return TypeDescriptor(TypeKind.MAP, key=key, value=value)

    @staticmethod
    def struct(
        tag: str,
        fields: Mapping[str, TypeDescriptor | None] | None = None,
    ) -> TypeDescriptor:
        declared = tuple(
            FieldDescriptor(name, descriptor)
            for name, descriptor in (fields or {}).items()
        )
        return TypeDescriptor(TypeKind.STRUCT, tag=tag, fields=declared)
