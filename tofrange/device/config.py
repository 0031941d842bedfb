"""Loading ranging presets into the sensor."""

import logging
from typing import Iterable

from tofrange.device.handle import DeviceEvent, DeviceHandle, DeviceState
from tofrange.device.presets import MEDIUM_RANGE, Preset, RegisterWrite
from tofrange.device.registers import REGISTERS
from tofrange.errors import StateError

__all__ = ("ConfigurationLoader",)
logger = logging.getLogger(__name__)

_HOLD_START = REGISTERS["SYSTEM__GROUPED_PARAMETER_HOLD_0"]
_HOLD_CONTINUE = REGISTERS["SYSTEM__GROUPED_PARAMETER_HOLD_1"]
_HOLD_APPLY = REGISTERS["SYSTEM__GROUPED_PARAMETER_HOLD"]
_INTERMEASUREMENT_PERIOD = REGISTERS["SYSTEM__INTERMEASUREMENT_PERIOD"]

_HOLD = 0x01
_APPLY = 0x02

_ROI_MIN_SIZE = 4
_ROI_MAX_SIZE = 16


class ConfigurationLoader:
    """Write presets and runtime configuration changes.

    Parameters
    ----------
    device : :class:`DeviceHandle`

    Attributes
    ----------
    preset : :class:`Preset` or None
        The preset currently in the device, including runtime changes.
    """

    def __init__(self, device: DeviceHandle):
        self._device = device
        self.preset = None

    @staticmethod
    def _encode(writes: Iterable[RegisterWrite]):
        return [(write.register.address, write.to_bytes()) for write in writes]

    def _write_all(self, writes: Iterable[RegisterWrite]):
        for register, data in self._encode(writes):
            self._device.write(data, register)

    def load(self, preset: Preset = MEDIUM_RANGE):
        """Write every register of `preset`.

        Static, general and timing registers are written in order, then the
        dynamic registers are applied through grouped parameter hold. The
        first failing write aborts the load.
        """
        self._device.require(DeviceState.CALIBRATED, DeviceState.CONFIGURED)
        logger.debug(f"loading preset '{preset.name}'")
        self._write_all(preset.static)
        self._write_all(preset.general)
        self._write_all(preset.timing)
        self._apply_dynamic(preset)
        self.preset = preset
        self._device.transition(DeviceEvent.CONFIGURE)

    def _apply_dynamic(self, preset: Preset):
        # Values are encoded before the hold is opened.
        first = self._encode(preset.dynamic_first)
        second = self._encode(preset.dynamic_second)
        self._device.write_byte(_HOLD, _HOLD_START.address)

        for register, data in first:
            self._device.write(data, register)

        self._device.write_byte(_HOLD, _HOLD_CONTINUE.address)

        for register, data in second:
            self._device.write(data, register)

        self._device.write_byte(_APPLY, _HOLD_APPLY.address)

    def apply_dynamic(self, preset: Preset):
        """Atomically replace the dynamic configuration.

        Allowed while ranging; the device keeps measuring with the previous
        values until the apply marker is written.
        """
        self._device.require(DeviceState.CONFIGURED, DeviceState.RANGING)
        self._apply_dynamic(preset)
        self.preset = preset

    def _current(self) -> Preset:
        if self.preset is None:
            raise StateError("no preset has been loaded through this loader")

        return self.preset

    def set_roi(self, centre_spad: int, width: int = 16, height: int = 16):
        """Select the region of interest of the SPAD array.

        Parameters
        ----------
        centre_spad : int
            SPAD number at the centre of the region, 0 to 255.
        width, height : int, optional
            Region size in SPADs, 4 to 16.
        """
        if not 0 <= centre_spad <= 0xFF:
            raise ValueError(f"centre SPAD must be 0 to 255, got {centre_spad}")

        for size in (width, height):
            if not _ROI_MIN_SIZE <= size <= _ROI_MAX_SIZE:
                raise ValueError(
                    f"ROI size must be {_ROI_MIN_SIZE} to {_ROI_MAX_SIZE}, got {size}"
                )

        preset = self._current().with_values(
            ROI_CONFIG__USER_ROI_CENTRE_SPAD=centre_spad,
            ROI_CONFIG__USER_ROI_REQUESTED_GLOBAL_XY_SIZE=(height - 1) << 4
            | (width - 1),
        )
        self.apply_dynamic(preset)

    def set_thresholds(self, high: int, low: int):
        """Set the distance thresholds in mm used for interrupt gating."""
        preset = self._current().with_values(
            SYSTEM__THRESH_HIGH=high,
            SYSTEM__THRESH_LOW=low,
        )
        self.apply_dynamic(preset)

    def set_inter_measurement_period(self, period_ms: int):
        """Set the time between the starts of two measurements.

        Only allowed while not ranging.
        """
        self._device.require(DeviceState.CONFIGURED)
        preset = self._current().with_values(
            SYSTEM__INTERMEASUREMENT_PERIOD=period_ms
        )
        self._device.write_long(period_ms, _INTERMEASUREMENT_PERIOD.address)
        self.preset = preset
