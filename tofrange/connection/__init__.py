"""Interfaces for communicating with PSLab devices."""

import logging

from serial.tools import list_ports

from .connection import ConnectionHandler
from ._serial import SerialHandler

__all__ = (
    "ConnectionHandler",
    "SerialHandler",
    "autoconnect",
    "detect",
)
logger = logging.getLogger(__name__)


def detect() -> list[ConnectionHandler]:
    """Detect PSLab devices.

    Returns
    -------
    devices : list[ConnectionHandler]
        Handlers for all detected PSLabs. The returned handlers are
        disconnected; call .connect() before use.
    """
    regex = []

    for vid, pid in zip(SerialHandler._USB_VID, SerialHandler._USB_PID):
        regex.append(f"{vid:04x}:{pid:04x}")

    regex = "(" + "|".join(regex) + ")"
    devices = []

    for port_info in list_ports.grep(regex):
        device = SerialHandler(port=port_info.device, baudrate=1000000, timeout=1)

        try:
            device.connect()
        except Exception as exc:
            logger.debug(f"{port_info.device} is not a PSLab: {exc}")
        else:
            devices.append(device)
        finally:
            device.disconnect()

    return devices


def autoconnect() -> ConnectionHandler:
    """Automatically connect when exactly one PSLab is present.

    Returns
    -------
    device : ConnectionHandler
        A handler connected to the detected PSLab.
    """
    devices = detect()

    if not devices:
        msg = "device not found"
        raise ConnectionError(msg)

    if len(devices) > 1:
        msg = f"autoconnect failed, multiple devices detected: {devices}"
        raise ConnectionError(msg)

    device = devices[0]
    device.connect()
    return device
