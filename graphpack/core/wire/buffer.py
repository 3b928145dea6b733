import struct

from graphpack.core.errors import MalformedInput, TruncatedInput

# All fixed-width values are little-endian on the wire.
_INT8 = struct.Struct("<b")
_UINT8 = struct.Struct("<B")
_INT16 = struct.Struct("<h")
_INT32 = struct.Struct("<i")
_UINT32 = struct.Struct("<I")
_INT64 = struct.Struct("<q")
_FLOAT32 = struct.Struct("<f")
_FLOAT64 = struct.Struct("<d")

MAX_VARINT_BYTES = 10


class BinaryWriter:
    """
    Append-only byte buffer.

    Fixed-width numbers are packed little-endian; counts, lengths and
    reference slots are unsigned LEB128 varints so that small values,
    which dominate real graphs, cost a single byte.
    """
    def __init__(self) -> None:
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)

    def write_bytes(self, data: bytes | bytearray | memoryview) -> None:
        self._buffer.extend(data)

    def write_int8(self, value: int) -> None:
        self._buffer.extend(_INT8.pack(value))

    def write_uint8(self, value: int) -> None:
        self._buffer.extend(_UINT8.pack(value))

    def write_bool(self, value: bool) -> None:
        self._buffer.append(1 if value else 0)

    def write_int16(self, value: int) -> None:
        self._buffer.extend(_INT16.pack(value))

    def write_int32(self, value: int) -> None:
        self._buffer.extend(_INT32.pack(value))

    def write_uint32(self, value: int) -> None:
        self._buffer.extend(_UINT32.pack(value))

    def write_int64(self, value: int) -> None:
        self._buffer.extend(_INT64.pack(value))

    def write_float32(self, value: float) -> None:
        self._buffer.extend(_FLOAT32.pack(value))

    def write_float64(self, value: float) -> None:
        self._buffer.extend(_FLOAT64.pack(value))

    def write_varuint(self, value: int) -> None:
        if value < 0:
            raise ValueError(f"varuint cannot encode negative value {value}")
        while value >= 0x80:
            self._buffer.append((value & 0x7F) | 0x80)
            value >>= 7
        self._buffer.append(value)

    def write_varint(self, value: int) -> None:
        # zig-zag: 0, -1, 1, -2, 2 ... -> 0, 1, 2, 3, 4 ...
        self.write_varuint((value << 1) ^ (value >> 63))

    def write_binary(self, data: bytes | bytearray | memoryview) -> None:
        self.write_varuint(len(data))
        self._buffer.extend(data)

    def write_string(self, value: str) -> None:
        self.write_binary(value.encode("utf-8"))


class BinaryReader:
    """
    Reader over an in-memory buffer.

    The reader never copies the input: `read_view` hands out memoryview
    slices of the caller's buffer, which is what allows typed arrays to be
    decoded without copying. Every read checks the remaining length first,
    so a declared length that would run past the end raises TruncatedInput
    before anything is allocated.
    """
    def __init__(self, data: bytes | bytearray | memoryview) -> None:
        self._view = memoryview(data).cast("B")
        self._pos = 0

    @property
    def position(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return len(self._view) - self._pos

    def _take(self, size: int) -> memoryview:
        if size < 0 or size > self.remaining:
            raise TruncatedInput(size, self.remaining)
        start = self._pos
        self._pos += size
        return self._view[start:self._pos]

    def seek(self, position: int) -> None:
        if position < 0 or position > len(self._view):
            raise TruncatedInput(position - self._pos, self.remaining)
        self._pos = position

    def read_view(self, size: int) -> memoryview:
        return self._take(size)

    def read_bytes(self, size: int) -> bytes:
        return bytes(self._take(size))

    def peek_int8(self) -> int:
        if self.remaining < 1:
            raise TruncatedInput(1, self.remaining)
        return _INT8.unpack_from(self._view, self._pos)[0]

    def read_int8(self) -> int:
        return _INT8.unpack(self._take(1))[0]

    def read_uint8(self) -> int:
        return _UINT8.unpack(self._take(1))[0]

    def read_bool(self) -> bool:
        return self._take(1)[0] != 0

    def read_int16(self) -> int:
        return _INT16.unpack(self._take(2))[0]

    def read_int32(self) -> int:
        return _INT32.unpack(self._take(4))[0]

    def read_uint32(self) -> int:
        return _UINT32.unpack(self._take(4))[0]

    def read_int64(self) -> int:
        return _INT64.unpack(self._take(8))[0]

    def read_float32(self) -> float:
        return _FLOAT32.unpack(self._take(4))[0]

    def read_float64(self) -> float:
        return _FLOAT64.unpack(self._take(8))[0]

    def read_varuint(self) -> int:
        result = 0
        shift = 0
        for _ in range(MAX_VARINT_BYTES):
            byte = self._take(1)[0]
            result |= (byte & 0x7F) << shift
            if byte < 0x80:
                return result
            shift += 7
        raise MalformedInput(f"varint longer than {MAX_VARINT_BYTES} bytes")

    def read_varint(self) -> int:
        raw = self.read_varuint()
        return (raw >> 1) ^ -(raw & 1)

    def read_binary(self) -> bytes:
        size = self.read_varuint()
        return self.read_bytes(size)

    def read_string(self) -> str:
        size = self.read_varuint()
        data = self._take(size)
        try:
            return str(data, "utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedInput(f"Invalid UTF-8 string: {exc}") from exc
