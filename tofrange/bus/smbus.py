"""Register transport over Linux i2c-dev."""

import logging

from smbus2 import SMBus, i2c_msg

import tofrange.protocol as CP
from tofrange.errors import BusError

__all__ = ("SMBusTransport",)
logger = logging.getLogger(__name__)


class SMBusTransport:
    """I2C transport for single-board computers using smbus2.

    Reads use a combined write/read message pair, so the register address and
    the data phase form one transaction with a repeated start.

    Parameters
    ----------
    bus : int or :class:`smbus2.SMBus`
        I2C bus number (e.g. 1 for /dev/i2c-1) or an open SMBus.
    """

    def __init__(self, bus=1):
        self._bus = SMBus(bus) if isinstance(bus, int) else bus

    def write(self, address: int, register: int, data: bytes):
        msg = i2c_msg.write(address, CP.RegisterAddress.pack(register) + bytes(data))

        try:
            self._bus.i2c_rdwr(msg)
        except OSError as exc:
            raise BusError(
                f"write to {address:#04x} register {register:#06x} failed"
            ) from exc

    def read(self, address: int, register: int, bytes_to_read: int) -> bytes:
        write_register = i2c_msg.write(address, CP.RegisterAddress.pack(register))
        read_data = i2c_msg.read(address, bytes_to_read)

        try:
            self._bus.i2c_rdwr(write_register, read_data)
        except OSError as exc:
            raise BusError(
                f"read from {address:#04x} register {register:#06x} failed"
            ) from exc

        return bytes(read_data)

    def close(self):
        self._bus.close()
