"""Common fixtures for tofrange tests."""

import pytest

from tofrange.device import (
    BootController,
    ConfigurationLoader,
    DeviceHandle,
    NvmReader,
    RangingController,
)
from tofrange.device.registers import REGISTERS
from tofrange.errors import BusError

ADDRESS = 0x29
OSCILLATOR_WORD = 0xD000  # 13 MHz in 4.12 fixed point
NVM = {
    0x11: 0x00000029,
    0x1C: OSCILLATOR_WORD,
    0x2C: 0x00000032,
}
MODEL_ID = b"\xea\xaa"

_SYSTEM_STATUS = REGISTERS["FIRMWARE__SYSTEM_STATUS"].address
_DEVICE_ADDRESS = REGISTERS["I2C_SLAVE__DEVICE_ADDRESS"].address
_MODEL_ID = REGISTERS["IDENTIFICATION__MODEL_ID"].address
_NVM_ADDR = REGISTERS["RANGING_CORE__NVM_CTRL__ADDR"].address
_NVM_DATAOUT = REGISTERS["RANGING_CORE__NVM_CTRL__DATAOUT"].address
_TIO_HV_STATUS = REGISTERS["GPIO__TIO_HV_STATUS"].address
_INTERRUPT_CLEAR = REGISTERS["SYSTEM__INTERRUPT_CLEAR"].address
_RESULT_START = REGISTERS["RESULT__INTERRUPT_STATUS"].address
HOLD_START = REGISTERS["SYSTEM__GROUPED_PARAMETER_HOLD_0"].address
HOLD_CONTINUE = REGISTERS["SYSTEM__GROUPED_PARAMETER_HOLD_1"].address
HOLD_APPLY = REGISTERS["SYSTEM__GROUPED_PARAMETER_HOLD"].address


def make_block(bins, range_status=0x09, stream_count=1):
    """Build a 77-byte result block."""
    block = bytearray([0x01, range_status, 0x00, stream_count, 0x00])

    for count in bins:
        block += count.to_bytes(3, "big")

    return bytes(block)


class FakeClock:
    """Clock that only advances when slept on."""

    def __init__(self):
        self.t = 0.0
        self.sleeps = []

    def now_ms(self):
        return self.t

    def sleep_ms(self, milliseconds):
        self.sleeps.append(("ms", milliseconds))
        self.t += milliseconds

    def sleep_us(self, microseconds):
        self.sleeps.append(("us", microseconds))
        self.t += microseconds / 1e3


class FakeSensor:
    """Register-level model of the ranging sensor, used as the bus.

    Attributes
    ----------
    boot_polls : int
        Number of boot flag reads that return "not booted".
    ready_after : int or None
        Number of data-ready reads that return "not ready" after each
        interrupt clear. None means never ready.
    log : list
        ("w", register, data) and ("r", register, length) in bus order.
    snapshots : list of bytes
        Live dynamic-configuration registers after every write.
    """

    def __init__(self, address=ADDRESS, boot_polls=0, nvm=None, clock=None):
        self.address = address
        self.memory = bytearray(0x10000)
        self.memory[_MODEL_ID : _MODEL_ID + 2] = MODEL_ID
        self.nvm = dict(NVM if nvm is None else nvm)
        self.boot_polls = boot_polls
        self.ready_after = 0
        self.result_block = make_block([0] * 24)
        self.fail_writes = set()
        self.fail_reads = set()
        self.log = []
        self.snapshots = []
        self.clock = clock
        self.timeline = []
        self._polls = 0
        self._ready_polls = 0
        self._hold = False
        self._shadow = {}

    @property
    def writes(self):
        return [(reg, data) for kind, reg, data in self.log if kind == "w"]

    def written(self, register):
        """All values written to `register`, in order."""
        return [data for reg, data in self.writes if reg == register]

    def _check_address(self, address):
        if address != self.address:
            raise BusError(f"no device at {address:#04x}")

    def write(self, address, register, data):
        self._check_address(address)
        data = bytes(data)
        self.log.append(("w", register, data))

        if self.clock is not None:
            self.timeline.append((self.clock.now_ms(), register, data))

        if register in self.fail_writes:
            raise BusError(f"write to {register:#06x} failed")

        if register == HOLD_START and data[0] == 0x01:
            self._hold = True
        elif register == HOLD_APPLY and data[0] == 0x02:
            for reg, value in self._shadow.items():
                self.memory[reg : reg + len(value)] = value

            self._shadow.clear()
            self._hold = False
        elif self._hold and HOLD_START < register < HOLD_APPLY:
            if register != HOLD_CONTINUE:
                self._shadow[register] = data

        if not (self._hold and HOLD_START < register < HOLD_APPLY):
            self.memory[register : register + len(data)] = data

        if register == _INTERRUPT_CLEAR:
            self._ready_polls = 0

        if register == _DEVICE_ADDRESS:
            self.address = data[0] & 0x7F

        self.snapshots.append(bytes(self.memory[HOLD_START + 1 : HOLD_APPLY]))

    def read(self, address, register, bytes_to_read):
        self._check_address(address)
        self.log.append(("r", register, bytes_to_read))

        if register in self.fail_reads:
            raise BusError(f"read from {register:#06x} failed")

        if register == _SYSTEM_STATUS:
            self._polls += 1
            return b"\x00" if self._polls <= self.boot_polls else b"\x01"

        if register == _NVM_DATAOUT:
            word = self.nvm.get(self.memory[_NVM_ADDR], 0)
            return word.to_bytes(4, "big")[:bytes_to_read]

        if register == _TIO_HV_STATUS:
            if self.ready_after is None or self._ready_polls < self.ready_after:
                self._ready_polls += 1
                return b"\x00"
            return b"\x01"

        if register == _RESULT_START and bytes_to_read == len(self.result_block):
            return self.result_block

        return bytes(self.memory[register : register + bytes_to_read])


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake(clock):
    return FakeSensor(clock=clock)


@pytest.fixture
def device(fake):
    return DeviceHandle(fake, ADDRESS)


@pytest.fixture
def booted(device, clock):
    BootController(device, clock).wait_boot()
    return device


@pytest.fixture
def calibrated(booted, clock):
    NvmReader(booted, clock).read_calibration()
    return booted


@pytest.fixture
def loader(calibrated):
    loader = ConfigurationLoader(calibrated)
    loader.load()
    return loader


@pytest.fixture
def configured(loader, calibrated):
    return calibrated


@pytest.fixture
def ranging(configured, clock):
    controller = RangingController(configured, clock)
    controller.start()
    return controller
