from typing import Protocol, Union

from pymodbus.client.mixin import ModbusClientMixin

from modbus_exporter.exception import InsufficientRegistersError
from modbus_exporter.model.enum.data_type_enum import DataType
from modbus_exporter.model.enum.endianness_enum import Endianness

REGISTER_BYTES = 2

_PYMODBUS_DATATYPE = {
    DataType.INT16: ModbusClientMixin.DATATYPE.INT16,
    DataType.UINT16: ModbusClientMixin.DATATYPE.UINT16,
    DataType.INT32: ModbusClientMixin.DATATYPE.INT32,
    DataType.UINT32: ModbusClientMixin.DATATYPE.UINT32,
    DataType.INT64: ModbusClientMixin.DATATYPE.INT64,
    DataType.UINT64: ModbusClientMixin.DATATYPE.UINT64,
    DataType.FLOAT32: ModbusClientMixin.DATATYPE.FLOAT32,
}


class DecodableDefinition(Protocol):
    data_type: DataType
    endianness: Endianness
    bit_offset: int | None


def required_byte_width(data_type: Union[DataType, str]) -> int:
    """Number of raw bytes needed to decode one value of ``data_type``."""
    return _to_data_type(data_type).byte_width


def to_big_endian(raw: bytes, endianness: Union[Endianness, str]) -> bytes:
    """
    Reorder ``raw`` into plain big-endian byte order.

    Works on any even width, so 16/32/64-bit values share one routine:
        - big     → unchanged
        - little  → whole buffer reversed
        - mixed   → the two bytes of every 16-bit word swapped, word order kept
        - yolo    → 16-bit word order reversed, bytes inside each word kept
    """
    fmt = Endianness.from_string(endianness) if isinstance(endianness, str) else endianness
    words = [raw[i : i + REGISTER_BYTES] for i in range(0, len(raw), REGISTER_BYTES)]

    match fmt:
        case Endianness.BIG:
            return bytes(raw)
        case Endianness.LITTLE:
            return bytes(raw[::-1])
        case Endianness.MIXED:
            return b"".join(word[::-1] for word in words)
        case Endianness.YOLO:
            return b"".join(reversed(words))
        case _:
            raise ValueError(f"unsupported endianness: {endianness}")


def decode_bytes(
    raw: bytes,
    data_type: Union[DataType, str],
    endianness: Union[Endianness, str] = Endianness.BIG,
    bit_offset: int | None = None,
) -> float:
    """
    Decode a raw byte buffer into a float.

    Raises:
        InsufficientRegistersError: ``raw`` is shorter than the data type requires.
    """
    fmt = _to_data_type(data_type)
    width = fmt.byte_width
    if len(raw) < width:
        raise InsufficientRegistersError(required=width, actual=len(raw))

    if fmt is DataType.BOOL:
        return float(extract_bit(raw[0], bit_offset or 0))

    ordered = to_big_endian(raw[:width], endianness)
    registers = [int.from_bytes(ordered[i : i + REGISTER_BYTES], "big") for i in range(0, width, REGISTER_BYTES)]
    value = ModbusClientMixin.convert_from_registers(registers, data_type=_PYMODBUS_DATATYPE[fmt], word_order="big")
    return float(value)


def decode_metric_data(definition: DecodableDefinition, raw: bytes) -> float:
    """Decode ``raw`` according to a metric definition's data type, endianness and bit offset."""
    return decode_bytes(
        raw,
        definition.data_type,
        endianness=definition.endianness or Endianness.BIG,
        bit_offset=definition.bit_offset,
    )


def extract_bit(value: int, bit: int) -> int:
    """Return single bit (0/1) from int."""
    return (int(value) >> bit) & 1


def registers_to_bytes(registers: list[int]) -> bytes:
    """Serialize 16-bit registers as they arrive on the wire (each word big-endian)."""
    return b"".join((int(r) & 0xFFFF).to_bytes(REGISTER_BYTES, "big") for r in registers)


def bits_to_bytes(bits: list[bool | int]) -> bytes:
    """Pack coil/discrete-input bits LSB-first, eight per byte, as Modbus does on the wire."""
    packed = bytearray((len(bits) + 7) // 8)
    for index, bit in enumerate(bits):
        if bit:
            packed[index // 8] |= 1 << (index % 8)
    return bytes(packed)


def _to_data_type(data_type: Union[DataType, str]) -> DataType:
    fmt = DataType.from_string(data_type) if isinstance(data_type, str) else data_type
    if fmt is None:
        raise ValueError(f"unsupported data type: {data_type}")
    return fmt
