"""Histogram Time-of-Flight ranging sensor.

Examples
--------
Bring the sensor up on the only connected PSLab and read a distance:

>>> from tofrange import TOFSensor
>>> with TOFSensor() as tof:
...     tof.start_ranging()
...     tof.get_raw()
412.37

Two sensors on one bus: hold the second in reset while the first is moved to
a new address, then release it.

>>> first = TOFSensor(bus=bus)
>>> first.set_address(0x30)
>>> second = TOFSensor(bus=bus)
"""

import logging
from typing import Tuple

from tofrange.bus.i2c import I2CBus
from tofrange.bus.registers import Transport
from tofrange.device import (
    BootController,
    ConfigurationLoader,
    DeviceHandle,
    DeviceState,
    DistanceEstimate,
    DistanceEstimator,
    HistogramDecoder,
    HistogramResult,
    MEDIUM_RANGE,
    NvmReader,
    RangingController,
)
from tofrange.device.handle import DEFAULT_ADDRESS
from tofrange.timing import Clock

__all__ = ("TOFSensor",)
logger = logging.getLogger(__name__)

_BOOT_TIMEOUT_MS = 500
_READY_TIMEOUT_MS = 2000
_MIN_PEAK_COUNT = 8


class TOFSensor:
    """Histogram ranging sensor, booted, calibrated and configured.

    Parameters
    ----------
    bus : :class:`Transport`, optional
        Bus the sensor is connected to. A bus passed in stays open and is
        closed by the caller. If not provided, an :class:`I2CBus` on the only
        connected PSLab is opened, and closed again by :meth:`close`.

    **kwargs : dict, optional
        - address (int): Current I2C address. Default 0x29.
        - io_2v8 (bool): Switch the I/O pads to 2.8 V. Default False.
        - boot_timeout_ms (float): Default 500.
        - ready_timeout_ms (float): Default 2000.
        - preset (:class:`Preset`): Default medium range.
        - oscillator_scaling (bool): Scale bin widths by the measured
          oscillator frequency. Default False.
        - min_peak_count (int): Peak count needed for sub-bin refinement.
          Default 8.
        - check_identity (bool): Verify the model ID after boot. Default True.
        - clock (:class:`Clock`)

    Attributes
    ----------
    device : :class:`DeviceHandle`
    calibration : :class:`Calibration`
    """

    PLOTNAMES = ["Distance"]
    NAME = "Histogram Time-of-Flight Ranging Sensor"

    def __init__(self, bus: Transport = None, **kwargs):
        self._owns_bus = bus is None
        self.bus = bus if bus is not None else I2CBus()
        self.ready_timeout_ms = kwargs.get("ready_timeout_ms", _READY_TIMEOUT_MS)
        self.device = DeviceHandle(self.bus, kwargs.get("address", DEFAULT_ADDRESS))

        try:
            self._bring_up(**kwargs)
        except Exception:
            self.close()
            raise

    def _bring_up(self, **kwargs):
        clock = kwargs.get("clock", Clock())
        preset = kwargs.get("preset", MEDIUM_RANGE)

        self._boot = BootController(self.device, clock)
        self._boot.wait_boot(kwargs.get("boot_timeout_ms", _BOOT_TIMEOUT_MS))
        self._boot.configure_io_voltage(kwargs.get("io_2v8", False))

        if kwargs.get("check_identity", True):
            self._boot.check_identity()

        self.calibration = NvmReader(self.device, clock).read_calibration()
        self.config = ConfigurationLoader(self.device)
        self.config.load(preset)

        oscillator = None

        if kwargs.get("oscillator_scaling", False):
            oscillator = self.calibration.oscillator_frequency

        estimator = DistanceEstimator.from_preset(
            preset,
            oscillator_frequency=oscillator,
            min_peak_count=kwargs.get("min_peak_count", _MIN_PEAK_COUNT),
        )
        self.ranging = RangingController(self.device, clock)
        self.decoder = HistogramDecoder(self.device, estimator)
        logger.debug(f"{self.NAME} ready at {self.device.address:#04x}")

    def __enter__(self) -> "TOFSensor":
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        try:
            if self.device.state in (DeviceState.RANGING, DeviceState.STOPPING):
                self.stop_ranging()
        finally:
            self.close()

    def close(self):
        """Close the bus if this sensor opened it."""
        if self._owns_bus:
            self.bus.close()
            self._owns_bus = False

    def set_address(self, new_address: int):
        """Move the sensor to `new_address` until the next reset."""
        self.device.set_address(new_address)

    def start_ranging(self):
        self.ranging.start()

    def stop_ranging(self):
        self.ranging.stop()

    def measure(self) -> Tuple[HistogramResult, DistanceEstimate]:
        """Wait for the next measurement and return it."""
        self.ranging.poll_ready(self.ready_timeout_ms)

        return self.decoder.read_result()

    def get_raw(self) -> float:
        """Wait for the next measurement and return its distance in mm.

        Raises
        ------
        RangeStatusError
            If the device flagged the measurement as invalid.
        """
        _, estimate = self.measure()
        estimate.raise_for_status()

        return estimate.distance_mm
