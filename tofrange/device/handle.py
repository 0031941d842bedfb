"""Device handle: bus address, calibration and lifecycle state."""

import enum
import logging
from typing import Optional

from tofrange.bus.registers import RegisterDevice, Transport
from tofrange.device.registers import REGISTERS
from tofrange.errors import InvalidAddress, StateError

__all__ = (
    "DEFAULT_ADDRESS",
    "DeviceEvent",
    "DeviceHandle",
    "DeviceState",
)
logger = logging.getLogger(__name__)

DEFAULT_ADDRESS = 0x29
MIN_ADDRESS = 0x08
MAX_ADDRESS = 0x77


class DeviceState(enum.Enum):
    POWERED_ON = "powered on"
    BOOTED = "booted"
    NVM_ENABLED = "NVM enabled"
    CALIBRATED = "calibrated"
    CONFIGURED = "configured"
    RANGING = "ranging"
    STOPPING = "stopping"


class DeviceEvent(enum.Enum):
    BOOT = "boot"
    NVM_ENABLE = "enable NVM"
    NVM_DISABLE = "disable NVM"
    CALIBRATE = "calibrate"
    CONFIGURE = "configure"
    START = "start"
    STOP = "stop"
    STOPPED = "stopped"
    RESET = "reset"


_S = DeviceState
_E = DeviceEvent
_TRANSITIONS = {
    (_S.POWERED_ON, _E.BOOT): _S.BOOTED,
    (_S.BOOTED, _E.NVM_ENABLE): _S.NVM_ENABLED,
    (_S.NVM_ENABLED, _E.NVM_DISABLE): _S.BOOTED,
    (_S.BOOTED, _E.CALIBRATE): _S.CALIBRATED,
    (_S.CALIBRATED, _E.CONFIGURE): _S.CONFIGURED,
    (_S.CONFIGURED, _E.CONFIGURE): _S.CONFIGURED,
    (_S.CONFIGURED, _E.START): _S.RANGING,
    (_S.RANGING, _E.STOP): _S.STOPPING,
    (_S.STOPPING, _E.STOP): _S.STOPPING,
    (_S.STOPPING, _E.STOPPED): _S.CONFIGURED,
}


class DeviceHandle(RegisterDevice):
    """The ranging sensor as seen by the driver components.

    The handle is the only place the device's lifecycle state is kept.
    Components call :meth:`transition` before touching the device, so calling
    them out of order fails before any bus access.

    Parameters
    ----------
    bus : :class:`Transport`
        Bus the sensor is connected to.
    address : int, optional
        Current 7-bit I2C address. Defaults to the factory address 0x29.

    Attributes
    ----------
    address : int
        Current 7-bit I2C address.
    state : :class:`DeviceState`
    """

    def __init__(self, bus: Transport, address: int = DEFAULT_ADDRESS):
        super().__init__(address, bus)
        self.state = DeviceState.POWERED_ON
        self._calibration = None

    def transition(self, event: DeviceEvent) -> DeviceState:
        """Apply `event` to the lifecycle state machine.

        Raises
        ------
        StateError
            If `event` is not allowed in the current state.
        """
        if event is DeviceEvent.RESET:
            new_state = DeviceState.POWERED_ON
        else:
            try:
                new_state = _TRANSITIONS[(self.state, event)]
            except KeyError:
                raise StateError(
                    f"cannot {event.value} while {self.state.value}"
                ) from None

        logger.debug(f"{self.address:#04x}: {self.state.value} -> {new_state.value}")
        self.state = new_state

        return new_state

    def require(self, *states: DeviceState):
        """Raise :class:`StateError` unless the device is in one of `states`."""
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise StateError(f"device is {self.state.value}, expected {allowed}")

    @property
    def calibration(self):
        """:class:`tofrange.device.nvm.Calibration` or None before NVM read."""
        return self._calibration

    @calibration.setter
    def calibration(self, value):
        if self._calibration is not None and value != self._calibration:
            raise StateError("factory calibration cannot change once read")

        self._calibration = value

    @property
    def oscillator_frequency(self) -> Optional[float]:
        """Factory-measured fast oscillator frequency in Hz."""
        if self._calibration is None:
            return None

        return self._calibration.oscillator_frequency

    def set_address(self, new_address: int):
        """Move the device to a new I2C address.

        The change takes effect immediately and is lost on power loss or
        soft reset.

        Parameters
        ----------
        new_address : int
            New 7-bit address, 0x08 to 0x77.

        Raises
        ------
        InvalidAddress
            If `new_address` is out of range. Nothing is written.
        """
        if not MIN_ADDRESS <= new_address <= MAX_ADDRESS:
            raise InvalidAddress(
                f"I2C address must be between {MIN_ADDRESS:#04x} and "
                f"{MAX_ADDRESS:#04x}, got {new_address:#04x}"
            )

        register = REGISTERS["I2C_SLAVE__DEVICE_ADDRESS"]
        self.write_byte(new_address & 0x7F, register.address)
        logger.debug(f"address {self.address:#04x} -> {new_address:#04x}")
        self.address = new_address

    def forget_address(self):
        """Revert to the factory address after reset or power loss."""
        self.address = DEFAULT_ADDRESS
        self.transition(DeviceEvent.RESET)
