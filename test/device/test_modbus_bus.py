import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
from pymodbus.exceptions import ModbusException

from modbus_exporter.device.modbus_bus import ModbusBus
from modbus_exporter.exception import DeviceReadError
from modbus_exporter.model.enum.register_type_enum import RegisterType


def _response(**payload) -> Mock:
    resp = Mock(**payload)
    resp.isError = Mock(return_value=False)
    return resp


@pytest.fixture
def mock_client() -> Mock:
    client = Mock()
    client.connected = True
    return client


class TestModbusBusRead:
    @pytest.mark.asyncio
    async def test_when_holding_registers_read_then_big_endian_bytes(self, mock_client):
        mock_client.read_holding_registers = AsyncMock(return_value=_response(registers=[0x0001, 0xABCD]))

        bus = ModbusBus(mock_client, device_id=3)
        raw = await bus.read(RegisterType.HOLDING, 10, 2)

        assert raw == bytes([0x00, 0x01, 0xAB, 0xCD])
        mock_client.read_holding_registers.assert_awaited_once_with(10, count=2, device_id=3)

    @pytest.mark.asyncio
    async def test_when_input_registers_read_then_input_function_used(self, mock_client):
        mock_client.read_input_registers = AsyncMock(return_value=_response(registers=[7]))

        raw = await ModbusBus(mock_client, device_id=1).read(RegisterType.INPUT, 0, 1)

        assert raw == b"\x00\x07"

    @pytest.mark.asyncio
    async def test_when_coils_read_then_bits_packed_and_truncated(self, mock_client):
        # pymodbus pads bits up to a full byte
        mock_client.read_coils = AsyncMock(return_value=_response(bits=[False, True] + [True] * 6))

        raw = await ModbusBus(mock_client, device_id=1).read(RegisterType.COIL, 5, 2)

        assert raw == bytes([0b10])

    @pytest.mark.asyncio
    async def test_when_discrete_inputs_read_then_bits_packed(self, mock_client):
        mock_client.read_discrete_inputs = AsyncMock(return_value=_response(bits=[True]))

        raw = await ModbusBus(mock_client, device_id=1).read(RegisterType.DISCRETE_INPUT, 0, 1)

        assert raw == b"\x01"

    @pytest.mark.asyncio
    async def test_when_lock_given_then_read_runs_under_lock(self, mock_client):
        lock = asyncio.Lock()

        async def read_holding(*args, **kwargs):
            assert lock.locked()
            return _response(registers=[1])

        mock_client.read_holding_registers = read_holding

        assert await ModbusBus(mock_client, device_id=1, lock=lock).read(RegisterType.HOLDING, 0, 1) == b"\x00\x01"
        assert not lock.locked()


class TestModbusBusErrorHandling:
    @pytest.mark.asyncio
    async def test_when_connection_failure_then_raises_read_error(self):
        client = Mock()
        client.connected = False
        client.connect = AsyncMock(return_value=False)

        with pytest.raises(DeviceReadError, match="connect failed") as exc_info:
            await ModbusBus(client, device_id=1).read(RegisterType.HOLDING, 4, 1)

        assert exc_info.value.offset == 4

    @pytest.mark.asyncio
    async def test_when_disconnected_then_connects_before_read(self):
        client = Mock()
        client.connected = False
        client.connect = AsyncMock(return_value=True)
        client.read_holding_registers = AsyncMock(return_value=_response(registers=[2]))

        assert await ModbusBus(client, device_id=1).read(RegisterType.HOLDING, 0, 1) == b"\x00\x02"
        client.connect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_when_modbus_error_response_then_raises_read_error(self, mock_client):
        resp = Mock()
        resp.isError = Mock(return_value=True)
        mock_client.read_holding_registers = AsyncMock(return_value=resp)

        with pytest.raises(DeviceReadError, match="error response"):
            await ModbusBus(mock_client, device_id=1).read(RegisterType.HOLDING, 0, 1)

    @pytest.mark.asyncio
    async def test_when_client_raises_modbus_exception_then_wrapped(self, mock_client):
        mock_client.read_input_registers = AsyncMock(side_effect=ModbusException("timeout"))

        with pytest.raises(DeviceReadError) as exc_info:
            await ModbusBus(mock_client, device_id=1).read(RegisterType.INPUT, 9, 1)

        assert exc_info.value.register_type == RegisterType.INPUT
        assert isinstance(exc_info.value.__cause__, ModbusException)

    @pytest.mark.asyncio
    async def test_when_response_has_no_registers_then_raises_read_error(self, mock_client):
        mock_client.read_holding_registers = AsyncMock(return_value=_response(registers=None))

        with pytest.raises(DeviceReadError, match="no registers"):
            await ModbusBus(mock_client, device_id=1).read(RegisterType.HOLDING, 0, 1)
