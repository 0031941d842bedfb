"""Factory calibration readout from the sensor's NVM.

NVM can only be read with the firmware stopped and the NVM block powered and
clocked. :class:`NvmSession` does the enable and disable sequences, and NVM
words can only be read through an open session:

>>> with NvmSession(device) as nvm:
...     word = nvm.read(0x1C)
"""

import logging
from dataclasses import dataclass
from typing import Dict

from tofrange.device.handle import DeviceEvent, DeviceHandle, DeviceState
from tofrange.device.registers import REGISTERS
from tofrange.errors import BusError, NvmReadFailure, StateError
from tofrange.timing import Clock

__all__ = (
    "Calibration",
    "NvmReader",
    "NvmSession",
)
logger = logging.getLogger(__name__)

# NVM word addresses
NVM_DEFAULT_ADDRESS = 0x11
NVM_OSCILLATOR_FREQUENCY = 0x1C
NVM_VHV_TIMEOUT = 0x2C

_POWER_FORCE_SETTLE_US = 250
_NVM_CLOCK_SETTLE_MS = 5
_READOUT_US = 5
_PULSE_WIDTH = 0x0004

_FIRMWARE_ENABLE = REGISTERS["FIRMWARE__ENABLE"].address
_POWER_FORCE = REGISTERS["POWER_MANAGEMENT__GO1_POWER_FORCE"].address
_NVM_PDN = REGISTERS["RANGING_CORE__NVM_CTRL__PDN"].address
_NVM_MODE = REGISTERS["RANGING_CORE__NVM_CTRL__MODE"].address
_NVM_PULSE_WIDTH = REGISTERS["RANGING_CORE__NVM_CTRL__PULSE_WIDTH"].address
_NVM_ADDR = REGISTERS["RANGING_CORE__NVM_CTRL__ADDR"].address
_NVM_READN = REGISTERS["RANGING_CORE__NVM_CTRL__READN"].address
_NVM_DATAOUT = REGISTERS["RANGING_CORE__NVM_CTRL__DATAOUT"].address
_CLK_CTRL1 = REGISTERS["RANGING_CORE__CLK_CTRL1"].address


@dataclass(frozen=True)
class Calibration:
    """Factory calibration read from NVM.

    Attributes
    ----------
    oscillator_frequency : float
        Fast oscillator frequency in Hz.
    default_address : int
        Factory 7-bit I2C address.
    vhv_timeout : int
        Upper bound for the VHV search loop, in macro periods.
    words : dict
        Raw NVM words by NVM address.
    """

    oscillator_frequency: float
    default_address: int
    vhv_timeout: int
    words: Dict[int, int]

    @classmethod
    def from_words(cls, words: Dict[int, int]) -> "Calibration":
        """Decode the interpreted NVM words.

        The oscillator frequency is an unsigned 4.12 fixed-point value in MHz
        in the low 16 bits of its word.
        """
        osc_raw = words[NVM_OSCILLATOR_FREQUENCY] & 0xFFFF

        if osc_raw == 0:
            raise NvmReadFailure("NVM holds no oscillator frequency")

        return cls(
            oscillator_frequency=osc_raw / (1 << 12) * 1e6,
            default_address=words[NVM_DEFAULT_ADDRESS] & 0x7F,
            vhv_timeout=words[NVM_VHV_TIMEOUT] & 0xFF,
            words=dict(words),
        )


class NvmWindow:
    """Read access to NVM, handed out by an entered :class:`NvmSession`.

    The window is closed when the session exits; reads through a closed
    window raise :class:`StateError` without touching the bus.
    """

    def __init__(self, device: DeviceHandle, clock: Clock):
        self._device = device
        self._clock = clock
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self):
        self._closed = True

    def read(self, nvm_address: int) -> int:
        """Read one 32-bit NVM word.

        Parameters
        ----------
        nvm_address : int
            NVM word address, 0x00 to 0xFF.

        Returns
        -------
        word : int
            The word, assembled most significant byte first.
        """
        if self._closed:
            raise StateError("NVM window is closed")

        if not 0 <= nvm_address <= 0xFF:
            raise ValueError(f"NVM address out of range: {nvm_address:#x}")

        try:
            self._device.write_byte(nvm_address, _NVM_ADDR)
            self._device.write_byte(0x00, _NVM_READN)
            self._clock.sleep_us(_READOUT_US)
            data = self._device.read(4, _NVM_DATAOUT)
        except BusError as exc:
            raise NvmReadFailure(f"reading NVM word {nvm_address:#04x} failed") from exc

        word = data[0] << 24 | data[1] << 16 | data[2] << 8 | data[3]
        logger.debug(f"NVM[{nvm_address:#04x}] = {word:#010x}")

        return word


class NvmSession:
    """Context manager that makes NVM readable.

    Entering runs the enable sequence and returns the only
    :class:`NvmWindow` that can read NVM, exiting closes the window and runs
    the disable sequence.
    The disable sequence also runs when enabling or reading failed, so the
    firmware is always restarted.

    Parameters
    ----------
    device : :class:`DeviceHandle`
        A booted device.
    clock : :class:`Clock`, optional
    """

    def __init__(self, device: DeviceHandle, clock: Clock = None):
        self._device = device
        self._clock = clock if clock is not None else Clock()
        self._window = None

    def __enter__(self) -> "NvmWindow":
        self._device.transition(DeviceEvent.NVM_ENABLE)

        try:
            self._enable()
        except BusError as exc:
            self._disable_best_effort()
            raise NvmReadFailure("could not enable NVM readout") from exc

        self._window = NvmWindow(self._device, self._clock)

        return self._window

    def __exit__(self, exc_type, exc_value, traceback):
        self._window.close()
        self._window = None

        if exc_type is not None:
            self._disable_best_effort()
            return False

        try:
            self._disable()
        except BusError as exc:
            self._disable_best_effort()
            raise NvmReadFailure("could not disable NVM readout") from exc

        self._device.transition(DeviceEvent.NVM_DISABLE)

        return False

    def _enable(self):
        self._device.write_byte(0x00, _FIRMWARE_ENABLE)
        self._device.write_byte(0x01, _POWER_FORCE)
        self._clock.sleep_us(_POWER_FORCE_SETTLE_US)
        self._device.write_byte(0x01, _NVM_PDN)
        self._device.write_byte(0x05, _CLK_CTRL1)
        self._clock.sleep_ms(_NVM_CLOCK_SETTLE_MS)
        self._device.write_byte(0x01, _NVM_MODE)
        self._device.write_int(_PULSE_WIDTH, _NVM_PULSE_WIDTH)

    def _disable_steps(self):
        return (
            (0x01, _CLK_CTRL1),
            (0x00, _NVM_PDN),
            (0x00, _POWER_FORCE),
            (0x01, _FIRMWARE_ENABLE),
        )

    def _disable(self):
        for value, register in self._disable_steps():
            self._device.write_byte(value, register)

    def _disable_best_effort(self):
        """Run every disable step, even after earlier ones fail."""
        for value, register in self._disable_steps():
            try:
                self._device.write_byte(value, register)
            except BusError as exc:
                logger.warning(f"NVM disable: write to {register:#06x} failed: {exc}")

        if self._device.state is DeviceState.NVM_ENABLED:
            self._device.transition(DeviceEvent.NVM_DISABLE)


class NvmReader:
    """Read the factory calibration of a booted device.

    Parameters
    ----------
    device : :class:`DeviceHandle`
    clock : :class:`Clock`, optional
    """

    FIELDS = (NVM_DEFAULT_ADDRESS, NVM_OSCILLATOR_FREQUENCY, NVM_VHV_TIMEOUT)

    def __init__(self, device: DeviceHandle, clock: Clock = None):
        self._device = device
        self._clock = clock

    def session(self) -> NvmSession:
        return NvmSession(self._device, self._clock)

    def read_calibration(self) -> Calibration:
        """Read and decode the calibration words, then mark the device calibrated."""
        with self.session() as nvm:
            words = {address: nvm.read(address) for address in self.FIELDS}

        calibration = Calibration.from_words(words)
        self._device.calibration = calibration
        self._device.transition(DeviceEvent.CALIBRATE)
        logger.debug(
            f"oscillator frequency {calibration.oscillator_frequency / 1e6:.3f} MHz"
        )

        return calibration
