"""Exceptions raised by tofrange.

All errors derive from builtin exception types so that callers can catch them
either specifically or by category (``OSError``, ``TimeoutError``, ...).
"""


class BusError(OSError):
    """A register transaction failed on the bus or the serial link."""


class NvmReadFailure(BusError):
    """Reading factory calibration from NVM failed."""


class BootTimeout(TimeoutError):
    """The device did not report boot completion in time."""


class MeasurementTimeout(TimeoutError):
    """No new measurement became ready in time."""


class InvalidAddress(ValueError):
    """Requested I2C address is outside 0x08 to 0x77."""


class StateError(RuntimeError):
    """Operation is not allowed in the current device state."""


class UnexpectedDeviceError(RuntimeError):
    """Identification registers do not match the expected device."""


# Device error codes reported in the low five bits of the range status byte.
RANGE_STATUS_MESSAGES = {
    0x00: "no update",
    0x01: "VCSEL continuity test failure",
    0x02: "signal fail (VCSEL watchdog test failure)",
    0x03: "no VHV value found",
    0x04: "MSRC no target",
    0x05: "range phase check failure",
    0x06: "sigma threshold check failure",
    0x07: "phase consistency check failure",
    0x08: "minimum clip",
    0x09: "range complete",
    0x0A: "algorithm underflow",
    0x0B: "algorithm overflow",
    0x0C: "range ignore threshold",
    0x0D: "user ROI clip",
    0x0E: "reference SPAD characterisation: not enough SPADs",
    0x0F: "reference SPAD characterisation: more than target",
    0x10: "reference SPAD characterisation: less than target",
    0x11: "multi clip failure",
    0x12: "GPH stream count 0 ready",
    0x13: "range complete, no wrap check",
    0x14: "event consistency failure",
    0x15: "minimum signal event check failure",
    0x16: "range complete, merged pulse",
}


class RangeStatusError(RuntimeError):
    """The device reported a range status other than "range complete".

    Parameters
    ----------
    code : int
        Raw range status code.

    Attributes
    ----------
    code : int
        Raw range status code.
    message : str
        Human readable description of the code.
    """

    def __init__(self, code: int):
        self.code = code
        self.message = RANGE_STATUS_MESSAGES.get(code, "unknown status")
        super().__init__(f"range status {code:#04x}: {self.message}")

    def __eq__(self, other):
        if isinstance(other, RangeStatusError):
            return self.code == other.code

        return NotImplemented

    def __hash__(self):
        return hash((RangeStatusError, self.code))
