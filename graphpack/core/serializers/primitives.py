from typing import Any, Callable, TYPE_CHECKING

from graphpack.core.models.types import TypeDescriptor, TypeKind, Type

if TYPE_CHECKING:
    from graphpack.core.context import ReadContext, WriteContext
    from graphpack.core.wire.buffer import BinaryReader, BinaryWriter


_WRITERS: dict[TypeKind, Callable[["BinaryWriter", Any], None]] = {
    TypeKind.BOOL: lambda w, v: w.write_bool(v),
    TypeKind.INT8: lambda w, v: w.write_int8(int(v)),
    TypeKind.INT16: lambda w, v: w.write_int16(int(v)),
    TypeKind.INT32: lambda w, v: w.write_int32(int(v)),
    TypeKind.INT64: lambda w, v: w.write_int64(int(v)),
    TypeKind.FLOAT32: lambda w, v: w.write_float32(float(v)),
    TypeKind.FLOAT64: lambda w, v: w.write_float64(float(v)),
}

_READERS: dict[TypeKind, Callable[["BinaryReader"], Any]] = {
    TypeKind.BOOL: lambda r: r.read_bool(),
    TypeKind.INT8: lambda r: r.read_int8(),
    TypeKind.INT16: lambda r: r.read_int16(),
    TypeKind.INT32: lambda r: r.read_int32(),
    TypeKind.INT64: lambda r: r.read_int64(),
    TypeKind.FLOAT32: lambda r: r.read_float32(),
    TypeKind.FLOAT64: lambda r: r.read_float64(),
}


class PrimitiveSerializer:
    """Fixed-width number or bool: no length prefix, never reference-tracked."""
    tracks_refs = False

    def __init__(self, kind: TypeKind) -> None:
        if not kind.is_primitive:
            raise ValueError(f"{kind!r} is not a primitive kind")
        self.kind = kind
        self.type_descriptor = TypeDescriptor(kind)
        self._write = _WRITERS[kind]
        self._read = _READERS[kind]

    def encode(self, value: Any, ctx: "WriteContext") -> None:
        self._write(ctx.writer, value)

    def decode(self, ctx: "ReadContext") -> Any:
        return self._read(ctx.reader)

    def __repr__(self) -> str:
        return f"PrimitiveSerializer({self.kind.name})"


class StringSerializer:
    tracks_refs = False
    type_descriptor = Type.string()

    def encode(self, value: str, ctx: "WriteContext") -> None:
        if not isinstance(value, str):
            raise TypeError(f"Expected str, got {type(value).__name__}")
        ctx.writer.write_string(value)

    def decode(self, ctx: "ReadContext") -> str:
        return ctx.reader.read_string()


class BinarySerializer:
    tracks_refs = False
    type_descriptor = Type.binary()

    def encode(self, value: bytes, ctx: "WriteContext") -> None:
        ctx.writer.write_binary(value)

    def decode(self, ctx: "ReadContext") -> bytes:
        return ctx.reader.read_binary()
