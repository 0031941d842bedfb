"""Continuous ranging control."""

import logging

from tofrange.device.handle import DeviceEvent, DeviceHandle, DeviceState
from tofrange.device.registers import REGISTERS
from tofrange.errors import MeasurementTimeout
from tofrange.timing import Clock

__all__ = ("RangingController",)
logger = logging.getLogger(__name__)

_READY_TIMEOUT_MS = 2000
_POLL_INTERVAL_MS = 1

_INTERRUPT_CONFIG = REGISTERS["SYSTEM__INTERRUPT_CONFIG_GPIO"].address
_INTERRUPT_CLEAR = REGISTERS["SYSTEM__INTERRUPT_CLEAR"].address
_MODE_START = REGISTERS["SYSTEM__MODE_START"].address
_HV_MUX_CTRL = REGISTERS["GPIO__HV_MUX__CTRL"].address
_TIO_HV_STATUS = REGISTERS["GPIO__TIO_HV_STATUS"].address

_NEW_SAMPLE_READY = 0x20
_CLEAR = 0x01
_BACK_TO_BACK = 0x40
_HISTOGRAM_SCHEDULER = 0x02
_MODE_CONTINUOUS_HISTOGRAM = _BACK_TO_BACK | _HISTOGRAM_SCHEDULER
_MODE_ABORT = 0x80
_ACTIVE_LOW = 0x10


class RangingController:
    """Start, stop and wait for measurements in continuous mode.

    Once started, the device measures back to back at the preset's
    inter-measurement period without further commands.

    Parameters
    ----------
    device : :class:`DeviceHandle`
    clock : :class:`Clock`, optional
    """

    def __init__(self, device: DeviceHandle, clock: Clock = None):
        self._device = device
        self._clock = clock if clock is not None else Clock()
        self._ready_level = 1

    def start(self):
        """Start continuous histogram ranging."""
        self._device.require(DeviceState.CONFIGURED)
        self._device.write_byte(_NEW_SAMPLE_READY, _INTERRUPT_CONFIG)
        mux = self._device.read_byte(_HV_MUX_CTRL)
        self._ready_level = 0 if mux & _ACTIVE_LOW else 1
        self.clear_interrupt()
        self._device.write_byte(_MODE_CONTINUOUS_HISTOGRAM, _MODE_START)
        self._device.transition(DeviceEvent.START)
        logger.debug("ranging started")

    def stop(self):
        """Stop ranging.

        The stop command is written twice because the device can miss one
        issued during a measurement. The loaded preset stays valid.
        """
        self._device.require(DeviceState.RANGING, DeviceState.STOPPING)
        self._device.transition(DeviceEvent.STOP)
        self._device.write_byte(_MODE_ABORT, _MODE_START)
        self._device.write_byte(_MODE_ABORT, _MODE_START)
        self.clear_interrupt()
        self._device.transition(DeviceEvent.STOPPED)
        logger.debug("ranging stopped")

    def clear_interrupt(self):
        self._device.write_byte(_CLEAR, _INTERRUPT_CLEAR)

    def data_ready(self) -> bool:
        """Return True if a new measurement is waiting."""
        status = self._device.read_byte(_TIO_HV_STATUS)

        return (status & 0x01) == self._ready_level

    def poll_ready(self, timeout_ms: float = _READY_TIMEOUT_MS) -> float:
        """Wait for a new measurement, checking every millisecond.

        Parameters
        ----------
        timeout_ms : float, optional
            A measurement takes about 33 ms; the default leaves room for
            missed cycles.

        Returns
        -------
        elapsed_ms : float

        Raises
        ------
        MeasurementTimeout
            If no measurement is ready within `timeout_ms`.
        """
        self._device.require(DeviceState.RANGING)
        start = self._clock.now_ms()

        while True:
            ready = self.data_ready()
            elapsed = self._clock.now_ms() - start

            if ready:
                return elapsed

            if elapsed >= timeout_ms:
                raise MeasurementTimeout(f"no measurement within {timeout_ms} ms")

            self._clock.sleep_ms(_POLL_INTERVAL_MS)
