"""Register transport with a PSLab as the I2C master.

Examples
--------
Set I2C bus speed to 400 kbit/s:

>>> from tofrange.bus.i2c import I2CBus
>>> bus = I2CBus()
>>> bus.configure(frequency=4e5)

Scan for connected devices:

>>> bus.scan()
[41]

Read the two byte model ID register of a ranging sensor at 0x29:

>>> bus.read(0x29, 0x010F, 2)
b'\\xea\\xaa'
"""

import logging
from typing import List

import tofrange.protocol as CP
from tofrange.connection import ConnectionHandler, autoconnect
from tofrange.errors import BusError

__all__ = ("I2CBus",)
logger = logging.getLogger(__name__)


class I2CBus:
    """I2C bus controller with 16-bit register addressing.

    Every :meth:`read` and :meth:`write` is a single I2C transaction, so the
    device sees multi-byte registers and bursts atomically.

    Parameters
    ----------
    device : :class:`ConnectionHandler`, optional
        Link to the PSLab. If not provided, the only connected PSLab is
        used.
    frequency : float, optional
        SCL frequency in Hz. Defaults to 400 kHz (fast mode).
    """

    _MIN_BRGVAL = 2
    _MAX_BRGVAL = 511

    # Typical SCL rise delay of the PSLab output stage.
    _SCL_DELAY = 150e-9

    _ACK = 0
    _READ = 1
    _WRITE = 0

    def __init__(self, device: ConnectionHandler = None, frequency: float = 4e5):
        self._device = device if device is not None else autoconnect()
        self._running = False
        self._init()
        self.configure(frequency)

    def _init(self):
        self._device.send_byte(CP.I2C_HEADER)
        self._device.send_byte(CP.I2C_INIT)
        self._device.get_ack()

    def configure(self, frequency: float):
        """Configure bus frequency.

        Parameters
        ----------
        frequency : float
            Frequency of SCL in Hz.

        Raises
        ------
        ValueError
            If given frequency is not supported by the PSLab.
        """
        brgval = self._get_i2c_brgval(frequency)

        if self._MIN_BRGVAL <= brgval <= self._MAX_BRGVAL:
            self._device.send_byte(CP.I2C_HEADER)
            self._device.send_byte(CP.I2C_CONFIG)
            self._device.send_int(brgval)
            self._device.get_ack()
        else:
            min_frequency = self._get_i2c_frequency(self._MAX_BRGVAL)
            max_frequency = self._get_i2c_frequency(self._MIN_BRGVAL)
            e = f"Frequency must be between {min_frequency} and {max_frequency} Hz."
            raise ValueError(e)

    @classmethod
    def _get_i2c_brgval(cls, frequency: float) -> int:
        return int((1 / frequency - cls._SCL_DELAY) * CP.CLOCK_RATE - 2)

    @classmethod
    def _get_i2c_frequency(cls, brgval: int) -> float:
        return 1 / ((brgval + 2) / CP.CLOCK_RATE + cls._SCL_DELAY)

    def scan(self, start: int = 0x08, end: int = 0x78) -> List[int]:
        """Scan the bus for connected devices.

        Parameters
        ----------
        start : int
            Address to start scanning at. Defaults to 0x08, the first address
            outside the reserved range.
        end : int
            Address to scan up to, exclusive. Defaults to 0x78.

        Returns
        -------
        addrs : list of int
            List of 7-bit addresses on which devices replied.
        """
        addrs = []

        for address in range(start, end):
            if self.ping(address):
                logger.info(f"Response from device on {hex(address)}.")
                addrs.append(address)

        return addrs

    def ping(self, address: int) -> bool:
        """Return True if a device ACKs its address."""
        response = self._start(address, self._READ)
        self._stop()

        return response == self._ACK

    def _start(self, address: int, mode: int) -> int:
        """Initiate (or re-initiate) an I2C transfer.

        Parameters
        ----------
        address : int
            7-bit I2C device address.
        mode : {0, 1}
            0: write
            1: read

        Returns
        -------
        response : int
            I2C acknowledge status from the device, 0 on ACK.
        """
        self._device.send_byte(CP.I2C_HEADER)
        secondary = CP.I2C_START if not self._running else CP.I2C_RESTART
        self._device.send_byte(secondary)
        self._device.send_byte((address << 1) | mode)
        response = self._device.get_ack() >> 4  # ACKSTAT
        self._running = True

        return response

    def _stop(self):
        """Stop I2C transfer."""
        if self._running:
            self._device.send_byte(CP.I2C_HEADER)
            self._device.send_byte(CP.I2C_STOP)
            self._device.get_ack()
            self._running = False

    def _send_byte(self, data: int) -> int:
        self._device.send_byte(CP.I2C_HEADER)
        self._device.send_byte(CP.I2C_SEND)
        self._device.send_byte(data)

        return self._device.get_ack() >> 4  # ACKSTAT

    def _read_more(self) -> int:
        """Read a byte and ACK it."""
        self._device.send_byte(CP.I2C_HEADER)
        self._device.send_byte(CP.I2C_READ_MORE)
        data = self._device.get_byte()
        self._device.get_ack()

        return data

    def _read_end(self) -> int:
        """Read a byte and NACK it, ending the read phase."""
        self._device.send_byte(CP.I2C_HEADER)
        self._device.send_byte(CP.I2C_READ_END)
        data = self._device.get_byte()
        self._device.get_ack()

        return data

    def _write_bulk(self, address: int, bytes_to_write: bytes):
        self._device.send_byte(CP.I2C_HEADER)
        self._device.send_byte(CP.I2C_WRITE_BULK)
        self._device.send_byte(address)
        self._device.send_byte(len(bytes_to_write))

        for byte in bytes_to_write:
            self._device.send_byte(byte)

        if self._device.get_ack() >> 4 != self._ACK:
            raise BusError(f"device {address:#04x} did not acknowledge write")

    def write(self, address: int, register: int, data: bytes):
        """Write data to consecutive device registers in one transaction.

        Parameters
        ----------
        address : int
            7-bit I2C device address.
        register : int
            16-bit register address of the first byte.
        data : bytes
            Register contents, most significant byte first.
        """
        self._write_bulk(address, CP.RegisterAddress.pack(register) + bytes(data))

    def read(self, address: int, register: int, bytes_to_read: int) -> bytes:
        """Read consecutive device registers in one transaction.

        The register address is written, followed by a repeated start and
        `bytes_to_read` reads. The device auto-increments its register
        pointer after each byte.

        Parameters
        ----------
        address : int
            7-bit I2C device address.
        register : int
            16-bit register address of the first byte.
        bytes_to_read : int
            Number of bytes to read.

        Returns
        -------
        data : bytes
        """
        try:
            if self._start(address, self._WRITE) != self._ACK:
                raise BusError(f"device {address:#04x} did not acknowledge")

            for byte in CP.RegisterAddress.pack(register):
                if self._send_byte(byte) != self._ACK:
                    raise BusError(f"device {address:#04x} rejected register")

            if self._start(address, self._READ) != self._ACK:
                raise BusError(f"device {address:#04x} did not acknowledge")

            data = bytearray()

            for _ in range(bytes_to_read - 1):
                data.append(self._read_more())

            data.append(self._read_end())
        finally:
            self._stop()

        return bytes(data)

    def close(self):
        """Stop any running transfer and disconnect from the PSLab."""
        self._stop()
        self._device.disconnect()
