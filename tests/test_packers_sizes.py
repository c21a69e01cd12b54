import pytest

from libdas.format.constants import SIGNATURE
from libdas.format.errors import WriterError
from libdas.format.grammar import ValueKind
from libdas.format.packers import (
    pack_field,
    pack_value,
    parse_signature,
    unpack_value,
    value_width,
)


@pytest.mark.parametrize(
    "kind,width",
    [
        (ValueKind.U8, 1),
        (ValueKind.BOOL, 1),
        (ValueKind.U32, 4),
        (ValueKind.COUNT, 4),
        (ValueKind.U64, 8),
        (ValueKind.F32, 4),
        (ValueKind.VEC3, 12),
        (ValueKind.QUAT, 16),
        (ValueKind.MAT4, 64),
    ],
)
def test_fixed_widths(kind, width):
    assert value_width(kind) == width
    assert len(pack_value(kind, [0] * (width // 4) if width >= 12 else 0)) == width


def test_array_widths_scale_with_count():
    assert value_width(ValueKind.U32_ARRAY, 5) == 20
    assert value_width(ValueKind.F32_ARRAY, 0) == 0
    assert value_width(ValueKind.BLOB, 7) == 7
    with pytest.raises(ValueError):
        value_width(ValueKind.STRING)


def test_little_endian_layout():
    assert pack_value(ValueKind.U32, 1) == b"\x01\x00\x00\x00"
    assert pack_value(ValueKind.U32_ARRAY, [1, 2]) == b"\x01\x00\x00\x00\x02\x00\x00\x00"
    assert unpack_value(ValueKind.F32_ARRAY, pack_value(ValueKind.F32_ARRAY, [0.5]), 1) == [0.5]
    assert unpack_value(ValueKind.BOOL, b"\x01") is True


def test_pack_field_line():
    assert pack_field("NAME", ValueKind.STRING, "ab") == b'NAME: "ab"\n'
    assert pack_field("SCALE", ValueKind.F32, 1.0) == b"SCALE: \x00\x00\x80\x3f\n"


def test_out_of_range_value_is_writer_error():
    with pytest.raises(WriterError):
        pack_value(ValueKind.U32, -1)
    with pytest.raises(WriterError):
        pack_value(ValueKind.VEC3, (1.0, 2.0))


def test_parse_signature():
    assert parse_signature(SIGNATURE) == {
        "magic": "44415300",
        "magic_ok": True,
        "padding_ok": True,
    }
    assert not parse_signature(b"DAS\x00" + b"\x01" * 12)["padding_ok"]
    assert parse_signature(b"DAS\x00" + b"\n" * 12)["padding_ok"]
    assert not parse_signature(b"DAS\x00" + b"\n" * 6 + b"\x00" * 6)["padding_ok"]
