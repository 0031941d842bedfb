"""Serial interface for communicating with PSLab devices."""

import os
import platform

import serial

from tofrange.connection.connection import ConnectionHandler
from tofrange.errors import BusError


def _check_serial_access_permission():
    """Check that we have permission to use the tty on Linux."""
    if platform.system() == "Linux":
        import grp

        if os.geteuid() == 0:  # Running as root?
            return

        for group in os.getgroups():
            if grp.getgrgid(group).gr_name in (
                "dialout",
                "uucp",
            ):
                return

        raise PermissionError(
            "The current user does not have permission to access the PSLab "
            "device. Add the user to the 'dialout' (on Debian-based systems) "
            "or 'uucp' (on Arch-based systems) group, then log in again."
        )


class SerialHandler(ConnectionHandler):
    """Interface for controlling a PSLab over a serial port.

    Parameters
    ----------
        port : str
        baudrate : int, default 1 MBd
        timeout : float, default 1 s
    """

    #            V5      V6
    _USB_VID = [0x04D8, 0x10C4]
    _USB_PID = [0x00DF, 0xEA60]

    def __init__(
        self,
        port: str,
        baudrate: int = 1000000,
        timeout: float = 1.0,
    ):
        self._port = port
        self._ser = serial.Serial(
            baudrate=baudrate,
            timeout=timeout,
            write_timeout=timeout,
        )
        _check_serial_access_permission()

    @property
    def port(self) -> str:
        """Serial port."""
        return self._port

    @property
    def baudrate(self) -> int:
        """Symbol rate."""
        return self._ser.baudrate

    @baudrate.setter
    def baudrate(self, value: int) -> None:
        self._ser.baudrate = value

    @property
    def timeout(self) -> float:
        """Timeout in seconds."""
        return self._ser.timeout

    @timeout.setter
    def timeout(self, value: float) -> None:
        self._ser.timeout = value
        self._ser.write_timeout = value

    def connect(self) -> None:
        """Connect to PSLab."""
        self._ser.port = self.port

        try:
            self._ser.open()
        except serial.SerialException as exc:
            raise BusError(f"could not open {self.port}") from exc

        try:
            self.get_version()
        except Exception:
            self._ser.close()
            raise

    def disconnect(self):
        """Disconnect from PSLab."""
        self._ser.close()

    def read(self, number_of_bytes: int) -> bytes:
        """Read bytes from serial port.

        Parameters
        ----------
        number_of_bytes : int
            Number of bytes to read from the serial port.

        Returns
        -------
        bytes
            Bytes read from the serial port.
        """
        try:
            return self._ser.read(number_of_bytes)
        except serial.SerialException as exc:
            raise BusError(f"serial read from {self.port} failed") from exc

    def write(self, data: bytes) -> int:
        """Write bytes to serial port.

        Parameters
        ----------
        data : bytes
            Bytes to write to the serial port.

        Returns
        -------
        int
            Number of bytes written.
        """
        try:
            return self._ser.write(data)
        except serial.SerialException as exc:
            raise BusError(f"serial write to {self.port} failed") from exc

    def __repr__(self) -> str:  # noqa
        return (
            f"{self.__class__.__name__}"
            "["
            f"{self.port}, "
            f"{self.baudrate} baud"
            "]"
        )
