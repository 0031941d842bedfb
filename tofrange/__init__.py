"""Driver for histogram Time-of-Flight ranging sensors."""
from tofrange.bus import I2CBus, RegisterDevice
from tofrange.device import DistanceEstimate, HistogramResult, MEDIUM_RANGE
from tofrange.errors import (
    BootTimeout,
    BusError,
    InvalidAddress,
    MeasurementTimeout,
    NvmReadFailure,
    RangeStatusError,
    StateError,
    UnexpectedDeviceError,
)
from tofrange.sensor import TOFSensor

__all__ = (
    "BootTimeout",
    "BusError",
    "DistanceEstimate",
    "HistogramResult",
    "I2CBus",
    "InvalidAddress",
    "MEDIUM_RANGE",
    "MeasurementTimeout",
    "NvmReadFailure",
    "RangeStatusError",
    "RegisterDevice",
    "StateError",
    "TOFSensor",
    "UnexpectedDeviceError",
)

__version__ = "1.0.0"
