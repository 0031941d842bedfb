import pytest

from tofrange.bus.smbus import SMBusTransport
from tofrange.errors import BusError

ADDRESS = 0x29


@pytest.fixture
def smbus(mocker):
    return mocker.patch("tofrange.bus.smbus.SMBus")


@pytest.fixture
def i2c_msg(mocker):
    return mocker.patch("tofrange.bus.smbus.i2c_msg")


def test_open_by_number(smbus):
    SMBusTransport(1)
    smbus.assert_called_once_with(1)


def test_open_bus_is_used(smbus, mocker):
    bus = mocker.MagicMock()
    transport = SMBusTransport(bus)
    smbus.assert_not_called()
    transport.close()
    bus.close.assert_called_once()


def test_write(smbus, i2c_msg):
    transport = SMBusTransport(1)
    transport.write(ADDRESS, 0x0087, b"\x42")
    i2c_msg.write.assert_called_once_with(ADDRESS, b"\x00\x87\x42")
    smbus().i2c_rdwr.assert_called_once_with(i2c_msg.write.return_value)


def test_read(smbus, i2c_msg):
    i2c_msg.read.return_value = b"\xea\xaa"
    transport = SMBusTransport(1)
    assert transport.read(ADDRESS, 0x010F, 2) == b"\xea\xaa"
    i2c_msg.write.assert_called_once_with(ADDRESS, b"\x01\x0f")
    i2c_msg.read.assert_called_once_with(ADDRESS, 2)
    smbus().i2c_rdwr.assert_called_once_with(
        i2c_msg.write.return_value, i2c_msg.read.return_value
    )


def test_write_error(smbus, i2c_msg):
    smbus().i2c_rdwr.side_effect = OSError(121, "Remote I/O error")

    with pytest.raises(BusError):
        SMBusTransport(1).write(ADDRESS, 0x0087, b"\x42")


def test_read_error(smbus, i2c_msg):
    smbus().i2c_rdwr.side_effect = OSError(121, "Remote I/O error")

    with pytest.raises(BusError):
        SMBusTransport(1).read(ADDRESS, 0x010F, 2)
