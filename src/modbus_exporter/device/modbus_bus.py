import asyncio
import logging
from typing import Protocol

from pymodbus.client.base import ModbusBaseClient
from pymodbus.exceptions import ModbusException
from pymodbus.pdu.pdu import ModbusPDU

from modbus_exporter.exception import DeviceReadError
from modbus_exporter.model.enum.register_type_enum import RegisterType
from modbus_exporter.util.data_decoder import bits_to_bytes, registers_to_bytes

logger = logging.getLogger("ModbusBus")


class RegisterReader(Protocol):
    async def read(self, register_type: RegisterType, offset: int, count: int) -> bytes: ...


class ModbusBus:
    def __init__(
        self,
        client: ModbusBaseClient,
        device_id: int,
        lock: asyncio.Lock | None = None,
    ):
        """
        Initialize ModbusBus.

        Args:
            client: pymodbus async client (TCP or serial)
            device_id: Modbus unit/slave address
            lock: per-port asyncio.Lock, to serialize all Modbus I/O on the same serial port
        """
        self.client = client
        self.device_id = int(device_id)
        self.lock = lock

    async def read(self, register_type: RegisterType, offset: int, count: int) -> bytes:
        """
        Read ``count`` registers (or bits) starting at ``offset`` and return the raw bytes.

        Registers are returned as big-endian words in address order; coils and discrete
        inputs are packed LSB-first.

        Raises:
            DeviceReadError: connection failed or the device answered with an error.
        """
        async with await self._lock_context():
            if not self.client.connected and not await self.client.connect():
                raise DeviceReadError(
                    f"[Bus] connect failed (device={self.device_id})", register_type=register_type, offset=offset
                )

            try:
                resp: ModbusPDU = await self._request(register_type, offset, count)
            except ModbusException as e:
                raise DeviceReadError(
                    f"[Bus] {register_type} read failed at offset {offset}: {e}",
                    register_type=register_type,
                    offset=offset,
                ) from e

            if resp.isError():
                raise DeviceReadError(
                    f"[Bus] Modbus error response: {resp}", register_type=register_type, offset=offset
                )

            if register_type.is_bit_type:
                bits = getattr(resp, "bits", None)
                if not isinstance(bits, list):
                    raise DeviceReadError("[Bus] response carries no bits", register_type=register_type, offset=offset)
                return bits_to_bytes(bits[:count])

            regs = getattr(resp, "registers", None)
            if not isinstance(regs, list):
                raise DeviceReadError(
                    "[Bus] response carries no registers", register_type=register_type, offset=offset
                )
            return registers_to_bytes(regs[:count])

    async def _request(self, register_type: RegisterType, offset: int, count: int) -> ModbusPDU:
        match register_type:
            case RegisterType.HOLDING:
                return await self.client.read_holding_registers(offset, count=count, device_id=self.device_id)
            case RegisterType.INPUT:
                return await self.client.read_input_registers(offset, count=count, device_id=self.device_id)
            case RegisterType.COIL:
                return await self.client.read_coils(offset, count=count, device_id=self.device_id)
            case RegisterType.DISCRETE_INPUT:
                return await self.client.read_discrete_inputs(offset, count=count, device_id=self.device_id)
            case _:
                raise DeviceReadError(f"[Bus] Unknown register_type: {register_type}", register_type=register_type)

    async def _lock_context(self):
        """
        Internal helper: use lock if provided, else a no-op context.
        """
        if self.lock:
            return self.lock
        return _NullAsyncLock()


class _NullAsyncLock:
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False
