"""Driver core for the histogram ranging sensor.

Bring-up runs once, each phase gating the next::

    BootController -> NvmReader -> ConfigurationLoader -> RangingController

after which :class:`RangingController` and :class:`HistogramDecoder` form the
measurement loop.
"""

from tofrange.device.boot import BootController
from tofrange.device.config import ConfigurationLoader
from tofrange.device.handle import DeviceEvent, DeviceHandle, DeviceState
from tofrange.device.histogram import (
    DistanceEstimate,
    DistanceEstimator,
    HistogramDecoder,
    HistogramResult,
)
from tofrange.device.nvm import Calibration, NvmReader, NvmSession, NvmWindow
from tofrange.device.presets import MEDIUM_RANGE, Preset, RegisterWrite
from tofrange.device.ranging import RangingController
from tofrange.device.registers import REGISTERS, RegisterDescriptor

__all__ = (
    "BootController",
    "Calibration",
    "ConfigurationLoader",
    "DeviceEvent",
    "DeviceHandle",
    "DeviceState",
    "DistanceEstimate",
    "DistanceEstimator",
    "HistogramDecoder",
    "HistogramResult",
    "MEDIUM_RANGE",
    "NvmReader",
    "NvmSession",
    "NvmWindow",
    "Preset",
    "RangingController",
    "REGISTERS",
    "RegisterDescriptor",
    "RegisterWrite",
)
