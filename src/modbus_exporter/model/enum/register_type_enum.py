from enum import StrEnum


class RegisterType(StrEnum):
    COIL = "coil"
    DISCRETE_INPUT = "discrete_input"
    INPUT = "input"
    HOLDING = "holding"

    @property
    def is_bit_type(self) -> bool:
        return self in (RegisterType.COIL, RegisterType.DISCRETE_INPUT)

    @classmethod
    def from_address(cls, address: int) -> tuple["RegisterType", int]:
        """
        Split a Modbus address into register type and zero-based offset.

        The leading digit of the 6-digit address selects the register type:
            1xxxxx → coil
            2xxxxx → discrete input
            3xxxxx → input register
            4xxxxx → holding register

        Examples:
            >>> RegisterType.from_address(300022)
            (<RegisterType.INPUT: 'input'>, 22)
        """
        prefix, offset = divmod(int(address), ADDRESS_PREFIX_BASE)
        register_type = _PREFIX_TO_TYPE.get(prefix)
        if register_type is None:
            raise ValueError(f"unknown register type prefix {prefix} in address {address}")
        return register_type, offset


ADDRESS_PREFIX_BASE = 100000

_PREFIX_TO_TYPE: dict[int, RegisterType] = {
    1: RegisterType.COIL,
    2: RegisterType.DISCRETE_INPUT,
    3: RegisterType.INPUT,
    4: RegisterType.HOLDING,
}
