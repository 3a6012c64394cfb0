from enum import StrEnum


class DataType(StrEnum):
    """Supported Modbus data types."""

    BOOL = "bool"
    INT16 = "int16"
    UINT16 = "uint16"
    INT32 = "int32"
    UINT32 = "uint32"
    INT64 = "int64"
    UINT64 = "uint64"
    FLOAT32 = "float32"

    @property
    def byte_width(self) -> int:
        return _BYTE_WIDTH[self]

    @classmethod
    def from_string(cls, s: str) -> "DataType | None":
        if isinstance(s, cls):
            return s
        key: str = s.lower().replace("-", "_").strip()
        alias_dict = {
            "boolean": "bool",
            "i16": "int16",
            "u16": "uint16",
            "i32": "int32",
            "u32": "uint32",
            "i64": "int64",
            "u64": "uint64",
            "f32": "float32",
            "float": "float32",
        }
        key = alias_dict.get(key, key)
        try:
            return cls(key)
        except ValueError:
            return None


_BYTE_WIDTH: dict[DataType, int] = {
    DataType.BOOL: 1,
    DataType.INT16: 2,
    DataType.UINT16: 2,
    DataType.INT32: 4,
    DataType.UINT32: 4,
    DataType.INT64: 8,
    DataType.UINT64: 8,
    DataType.FLOAT32: 4,
}
