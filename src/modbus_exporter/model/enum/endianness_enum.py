from enum import StrEnum


class Endianness(StrEnum):
    """
    Byte ordering of a multi-register value on the wire.

    Shown for the 32-bit value 0xAABBCCDD (A=0xAA ... D=0xDD):
        - big     → A B C D (network order, default)
        - little  → D C B A
        - mixed   → B A D C (bytes swapped inside each 16-bit word)
        - yolo    → C D A B (16-bit words in reverse order)
    """

    BIG = "big"
    LITTLE = "little"
    MIXED = "mixed"
    YOLO = "yolo"

    @classmethod
    def from_string(cls, s: str) -> "Endianness | None":
        if isinstance(s, cls):
            return s
        key: str = s.lower().replace("-", "_").strip()
        alias_dict = {
            "big_endian": "big",
            "be": "big",
            "little_endian": "little",
            "le": "little",
            "mixed_endian": "mixed",
            "yolo_endian": "yolo",
        }
        key = alias_dict.get(key, key)
        try:
            return cls(key)
        except ValueError:
            return None
