from typing import Any, Sequence, TYPE_CHECKING

import numpy as np

from graphpack.core.errors import UnsupportedElementKind, TruncatedInput
from graphpack.core.models.types import TypeKind, Type

if TYPE_CHECKING:
    from graphpack.core.context import ReadContext, WriteContext


# Element kinds are packed little-endian regardless of the host, so the
# dtypes are explicit about byte order.
_DTYPES: dict[TypeKind, np.dtype] = {
    TypeKind.BOOL: np.dtype(np.bool_),
    TypeKind.INT8: np.dtype("<i1"),
    TypeKind.INT16: np.dtype("<i2"),
    TypeKind.INT32: np.dtype("<i4"),
    TypeKind.INT64: np.dtype("<i8"),
    TypeKind.FLOAT32: np.dtype("<f4"),
    TypeKind.FLOAT64: np.dtype("<f8"),
}

_KINDS: dict[tuple[str, int], TypeKind] = {
    (dtype.kind, dtype.itemsize): kind for kind, dtype in _DTYPES.items()
}


def element_kind_of(dtype: np.dtype) -> TypeKind:
    """Map a numpy dtype onto the wire element kind it packs as."""
    kind = _KINDS.get((dtype.kind, dtype.itemsize))
    if kind is None:
        raise UnsupportedElementKind(str(dtype))
    return kind


class TypedArraySerializer:
    """
    Homogeneous numeric array.

    Wire shape: element-kind byte, varuint count, then `count` packed
    little-endian elements with no per-element descriptor. Decoding wraps
    the input buffer with numpy.frombuffer, so the returned array is a
    read-only view that shares memory with the payload.

    With an `element` kind (declared struct fields) any sequence is
    accepted and converted; without one (runtime dispatch on ndarray) the
    kind is taken from the array's dtype.
    """
    tracks_refs = True

    def __init__(self, element: TypeKind | None = None) -> None:
        self.element = element
        self.type_descriptor = Type.typed_array(element)

    def encode(self, value: Any, ctx: "WriteContext") -> None:
        if self.element is not None:
            array = np.asarray(value, dtype=_DTYPES[self.element])
            kind = self.element
        else:
            array = np.asarray(value)
            kind = element_kind_of(array.dtype)

        if array.ndim != 1:
            raise ValueError(f"Typed arrays must be one-dimensional, got shape {array.shape}")

        packed = array.astype(_DTYPES[kind], copy=False)
        ctx.writer.write_uint8(kind)
        ctx.writer.write_varuint(len(packed))
        ctx.writer.write_bytes(packed.tobytes())

    def decode(self, ctx: "ReadContext") -> np.ndarray:
        raw_kind = ctx.reader.read_uint8()
        try:
            kind = TypeKind(raw_kind)
            dtype = _DTYPES[kind]
        except (ValueError, KeyError):
            raise UnsupportedElementKind(raw_kind) from None

        count = ctx.reader.read_varuint()
        size = count * dtype.itemsize
        if size > ctx.reader.remaining:
            raise TruncatedInput(size, ctx.reader.remaining)
        if count == 0:
            return np.empty(0, dtype=dtype)
        return np.frombuffer(ctx.reader.read_view(size), dtype=dtype, count=count)


class StringArraySerializer:
    """Sequence of strings: varuint count, then length-prefixed UTF-8 elements."""
    tracks_refs = True
    type_descriptor = Type.string_array()

    def encode(self, value: Sequence[str], ctx: "WriteContext") -> None:
        ctx.writer.write_varuint(len(value))
        for item in value:
            if not isinstance(item, str):
                raise TypeError(f"String array element must be str, got {type(item).__name__}")
            ctx.writer.write_string(item)

    def decode(self, ctx: "ReadContext") -> list[str]:
        count = ctx.reader.read_varuint()
        return [ctx.reader.read_string() for _ in range(count)]
