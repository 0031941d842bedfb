"""Typed access to the 16-bit register map of an I2C device."""

import logging
from typing import Protocol

__all__ = (
    "RegisterDevice",
    "Transport",
)
logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Anything that can move bytes to and from device registers.

    Each call must be a single bus transaction. Failures are raised as
    :class:`tofrange.errors.BusError`.
    """

    def write(self, address: int, register: int, data: bytes) -> None:
        ...

    def read(self, address: int, register: int, bytes_to_read: int) -> bytes:
        ...


class RegisterDevice:
    """A device on the bus with big-endian registers of 1 to 4 bytes.

    Parameters
    ----------
    address : int
        7-bit I2C device address.
    bus : :class:`Transport`
        Bus the device is connected to.

    Attributes
    ----------
    address : int
        7-bit I2C device address.
    """

    def __init__(self, address: int, bus: Transport):
        self.address = address
        self._bus = bus

    def read(self, bytes_to_read: int, register_address: int) -> bytes:
        """Burst-read consecutive registers.

        Parameters
        ----------
        bytes_to_read : int
            Number of bytes to read.
        register_address : int
            Address of the first register.

        Returns
        -------
        data : bytes
        """
        return bytes(self._bus.read(self.address, register_address, bytes_to_read))

    def write(self, bytes_to_write: bytes, register_address: int):
        """Burst-write consecutive registers.

        Parameters
        ----------
        bytes_to_write : bytes
            Data to write, first byte to `register_address`.
        register_address : int
            Address of the first register.
        """
        self._bus.write(self.address, register_address, bytes(bytes_to_write))

    def read_value(self, register_address: int, width: int) -> int:
        """Read an unsigned big-endian value `width` bytes wide."""
        if width not in (1, 2, 3, 4):
            raise ValueError(f"register width must be 1 to 4 bytes, not {width}")

        return int.from_bytes(self.read(width, register_address), "big")

    def write_value(self, data: int, register_address: int, width: int):
        """Write an unsigned big-endian value `width` bytes wide.

        Raises
        ------
        ValueError
            If `data` does not fit in `width` bytes. Nothing is written.
        """
        if width not in (1, 2, 3, 4):
            raise ValueError(f"register width must be 1 to 4 bytes, not {width}")

        if not 0 <= data < 1 << (8 * width):
            raise ValueError(f"{data} does not fit in {width} byte(s)")

        self.write(data.to_bytes(width, "big"), register_address)

    def read_byte(self, register_address: int) -> int:
        return self.read_value(register_address, 1)

    def read_int(self, register_address: int) -> int:
        return self.read_value(register_address, 2)

    def read_uint24(self, register_address: int) -> int:
        return self.read_value(register_address, 3)

    def read_long(self, register_address: int) -> int:
        return self.read_value(register_address, 4)

    def write_byte(self, data: int, register_address: int):
        self.write_value(data, register_address, 1)

    def write_int(self, data: int, register_address: int):
        self.write_value(data, register_address, 2)

    def write_uint24(self, data: int, register_address: int):
        self.write_value(data, register_address, 3)

    def write_long(self, data: int, register_address: int):
        self.write_value(data, register_address, 4)

    def update_bits(self, register_address: int, mask: int, value: int):
        """Read-modify-write the bits of a one byte register selected by `mask`.

        Bits outside `mask` keep their current value.
        """
        current = self.read_byte(register_address)
        updated = (current & ~mask & 0xFF) | (value & mask)
        logger.debug(
            f"{register_address:#06x}: {current:#04x} -> {updated:#04x}"
        )
        self.write_byte(updated, register_address)
