"""Interface objects common to all links to a PSLab."""

from abc import ABC, abstractmethod

import tofrange.protocol as CP
from tofrange.errors import BusError


class ConnectionHandler(ABC):
    """Abstract base class for byte-stream links to a PSLab."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to PSLab."""
        ...

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect PSLab."""
        ...

    @abstractmethod
    def read(self, numbytes: int) -> bytes:
        """Read data from PSLab.

        Parameters
        ----------
        numbytes : int

        Returns
        -------
        data : bytes
        """
        ...

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Write data to PSLab.

        Parameters
        ----------
        data : bytes

        Returns
        -------
        numbytes : int
        """
        ...

    def get_byte(self) -> int:
        """Read a single one-byte integer value.

        Returns
        -------
        int
        """
        return int.from_bytes(self.read(1), byteorder="little")

    def send_byte(self, data: int | bytes) -> None:
        """Write a single one-byte integer value.

        Parameters
        ----------
        data : int | bytes
        """
        if isinstance(data, int):
            data = data.to_bytes(length=1, byteorder="little")
        self.write(data)

    def send_int(self, data: int | bytes) -> None:
        """Write a single two-byte integer value.

        Parameters
        ----------
        data : int | bytes
        """
        if isinstance(data, int):
            data = data.to_bytes(length=2, byteorder="little")
        self.write(data)

    def get_ack(self) -> int:
        """Get response code from PSLab.

        Returns
        -------
        int
            Response code. Bit 0 is set on success; bits 4-7 hold the I2C
            acknowledge status (0 means the addressed device ACKed).

        Raises
        ------
        BusError
            If no response arrives before the link timeout, or if the
            response is not an ACK.
        """
        response = self.read(1)

        if not response:
            raise BusError("timeout while waiting for ACK from PSLab")

        ack = CP.Byte.unpack(response)[0]

        if not (ack & 0x01):
            raise BusError(f"received non ACK byte {ack:#04x} from PSLab")

        return ack

    def get_version(self) -> str:
        """Query PSLab for its version and return it as a decoded string.

        Returns
        -------
        str
            Version string.
        """
        self.send_byte(CP.COMMON)
        self.send_byte(CP.GET_VERSION)
        version = self.read(self._VERSION_LENGTH)

        if b"PSLab" not in version:
            msg = f"got unexpected hardware version: {version}"
            raise ConnectionError(msg)

        return version.decode("utf-8")

    _VERSION_LENGTH = 9
