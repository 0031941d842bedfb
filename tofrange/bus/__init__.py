"""Register transports and typed register access."""

from tofrange.bus.i2c import I2CBus
from tofrange.bus.registers import RegisterDevice, Transport

__all__ = (
    "I2CBus",
    "RegisterDevice",
    "SMBusTransport",
    "Transport",
)


def __getattr__(name):
    # smbus2 only imports on Linux; load it on first use.
    if name == "SMBusTransport":
        from tofrange.bus.smbus import SMBusTransport

        return SMBusTransport

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
