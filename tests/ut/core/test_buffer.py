import math

import pytest

from graphpack.core.errors import MalformedInput, TruncatedInput
from graphpack.core.wire.buffer import BinaryReader, BinaryWriter


@pytest.mark.ut
def test_fixed_width_values_are_little_endian():
    writer = BinaryWriter()
    writer.write_int16(0x0102)
    writer.write_int32(0x01020304)
    writer.write_uint32(0xFFFFFFFE)

    assert writer.getvalue() == b"\x02\x01" + b"\x04\x03\x02\x01" + b"\xfe\xff\xff\xff"


@pytest.mark.ut
@pytest.mark.parametrize(
    "value, encoded",
    [
        (0, b"\x00"),
        (1, b"\x01"),
        (127, b"\x7f"),
        (128, b"\x80\x01"),
        (300, b"\xac\x02"),
        (2 ** 64 - 1, b"\xff" * 9 + b"\x01"),
    ],
)
def test_varuint_encoding(value, encoded):
    writer = BinaryWriter()
    writer.write_varuint(value)

    assert writer.getvalue() == encoded
    assert BinaryReader(encoded).read_varuint() == value


@pytest.mark.ut
@pytest.mark.parametrize("value, zigzag", [(0, 0), (-1, 1), (1, 2), (-2, 3), (2 ** 62, 2 ** 63)])
def test_varint_uses_zigzag(value, zigzag):
    signed = BinaryWriter()
    signed.write_varint(value)
    unsigned = BinaryWriter()
    unsigned.write_varuint(zigzag)

    assert signed.getvalue() == unsigned.getvalue()
    assert BinaryReader(signed.getvalue()).read_varint() == value


@pytest.mark.ut
def test_varuint_rejects_negative():
    with pytest.raises(ValueError):
        BinaryWriter().write_varuint(-1)


@pytest.mark.ut
def test_reader_mirrors_writer():
    writer = BinaryWriter()
    writer.write_int8(-5)
    writer.write_uint8(250)
    writer.write_bool(True)
    writer.write_int64(-(2 ** 63))
    writer.write_float32(1.5)
    writer.write_float64(math.pi)
    writer.write_string("héllo")
    writer.write_binary(b"\x00\x01")

    reader = BinaryReader(writer.getvalue())
    assert reader.read_int8() == -5
    assert reader.read_uint8() == 250
    assert reader.read_bool() is True
    assert reader.read_int64() == -(2 ** 63)
    assert reader.read_float32() == 1.5
    assert reader.read_float64() == math.pi
    assert reader.read_string() == "héllo"
    assert reader.read_binary() == b"\x00\x01"
    assert reader.remaining == 0


@pytest.mark.ut
def test_string_is_length_prefixed_utf8_without_terminator():
    writer = BinaryWriter()
    writer.write_string("é")

    assert writer.getvalue() == b"\x02\xc3\xa9"


@pytest.mark.ut
def test_peek_does_not_advance():
    reader = BinaryReader(b"\xfe\x01")

    assert reader.peek_int8() == -2
    assert reader.position == 0
    assert reader.read_int8() == -2
    assert reader.position == 1


@pytest.mark.ut
def test_read_view_shares_memory():
    data = bytearray(b"abcdef")
    reader = BinaryReader(data)
    reader.read_bytes(2)
    view = reader.read_view(3)

    data[2] = ord("X")
    assert bytes(view) == b"Xde"
    assert reader.remaining == 1


@pytest.mark.ut
def test_read_past_end_raises_truncated():
    reader = BinaryReader(b"\x01\x02")

    with pytest.raises(TruncatedInput) as exc:
        reader.read_int32()
    assert exc.value.needed == 4
    assert exc.value.remaining == 2


@pytest.mark.ut
def test_declared_length_beyond_input_raises_truncated():
    # length prefix claims 1000 bytes, three follow
    reader = BinaryReader(b"\xe8\x07abc")

    with pytest.raises(TruncatedInput):
        reader.read_string()


@pytest.mark.ut
def test_unterminated_varuint_raises_truncated():
    with pytest.raises(TruncatedInput):
        BinaryReader(b"\x80\x80").read_varuint()


@pytest.mark.ut
def test_overlong_varuint_is_malformed():
    with pytest.raises(MalformedInput):
        BinaryReader(b"\x80" * 11 + b"\x01").read_varuint()


@pytest.mark.ut
def test_invalid_utf8_is_malformed():
    with pytest.raises(MalformedInput):
        BinaryReader(b"\x02\xc3\x28").read_string()


@pytest.mark.ut
def test_reader_seek_within_bounds():
    reader = BinaryReader(b"\x01\x02\x03")

    reader.seek(2)
    assert reader.read_uint8() == 3
    reader.seek(0)
    assert reader.position == 0
    assert reader.remaining == 3
    reader.seek(3)
    assert reader.remaining == 0

    with pytest.raises(TruncatedInput):
        reader.seek(4)
    with pytest.raises(TruncatedInput):
        reader.seek(-1)
