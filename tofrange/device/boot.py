"""Boot and bring-up of the ranging sensor."""

import logging

from tofrange.device.handle import DeviceEvent, DeviceHandle, DeviceState
from tofrange.device.registers import REGISTERS
from tofrange.errors import BootTimeout, UnexpectedDeviceError
from tofrange.timing import Clock

__all__ = ("BootController",)
logger = logging.getLogger(__name__)

_BOOT_TIMEOUT_MS = 500
_POLL_INTERVAL_MS = 1
_SOFT_RESET_US = 100

_BOOTED = 0x01
_PAD_2V8 = 0x01
MODEL_ID = 0xEAAA

_SYSTEM_STATUS = REGISTERS["FIRMWARE__SYSTEM_STATUS"]
_EXTSUP_CONFIG = REGISTERS["PAD_I2C_HV__EXTSUP_CONFIG"]
_MODEL_ID = REGISTERS["IDENTIFICATION__MODEL_ID"]
_SOFT_RESET = REGISTERS["SOFT_RESET"]


class BootController:
    """Take a powered sensor to the booted state.

    Parameters
    ----------
    device : :class:`DeviceHandle`
    clock : :class:`Clock`, optional
    """

    def __init__(self, device: DeviceHandle, clock: Clock = None):
        self._device = device
        self._clock = clock if clock is not None else Clock()

    def wait_boot(self, timeout_ms: float = _BOOT_TIMEOUT_MS) -> float:
        """Poll the firmware boot flag every millisecond until it is set.

        Parameters
        ----------
        timeout_ms : float, optional
            Give up after this many milliseconds. Boot usually completes in
            100 to 200 ms.

        Returns
        -------
        elapsed_ms : float
            Time from the first poll until the flag was seen.

        Raises
        ------
        BootTimeout
            If the flag is not set within `timeout_ms`.
        """
        self._device.require(DeviceState.POWERED_ON)
        start = self._clock.now_ms()

        while True:
            status = self._device.read_byte(_SYSTEM_STATUS.address)
            elapsed = self._clock.now_ms() - start

            if status & _BOOTED:
                break

            if elapsed >= timeout_ms:
                raise BootTimeout(
                    f"device {self._device.address:#04x} did not boot within "
                    f"{timeout_ms} ms"
                )

            self._clock.sleep_ms(_POLL_INTERVAL_MS)

        self._device.transition(DeviceEvent.BOOT)
        logger.debug(f"booted after {elapsed:.0f} ms")

        return elapsed

    def configure_io_voltage(self, is_2v8: bool):
        """Select 2.8 V I/O pads.

        The device boots with 1.8 V pads, so nothing is written unless
        `is_2v8` is True. Other bits in the pad register are preserved.
        """
        self._device.require(DeviceState.BOOTED)

        if not is_2v8:
            return

        self._device.update_bits(_EXTSUP_CONFIG.address, _PAD_2V8, _PAD_2V8)

    def check_identity(self, expected: int = MODEL_ID):
        """Check model and module type against `expected`.

        Raises
        ------
        UnexpectedDeviceError
            If the identification register holds another value.
        """
        model_id = self._device.read_int(_MODEL_ID.address)

        if model_id != expected:
            raise UnexpectedDeviceError(
                f"unexpected model ID {model_id:#06x}, expected {expected:#06x}"
            )

    def soft_reset(self):
        """Reset the device firmware.

        The device returns to its factory address and has to boot again.
        """
        self._device.write_byte(0x00, _SOFT_RESET.address)
        self._clock.sleep_us(_SOFT_RESET_US)
        self._device.write_byte(0x01, _SOFT_RESET.address)
        self._device.forget_address()
