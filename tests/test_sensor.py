import pytest

from tofrange import TOFSensor
from tofrange.device import DeviceState
from tofrange.device.registers import REGISTERS
from tofrange.errors import (
    BootTimeout,
    MeasurementTimeout,
    RangeStatusError,
    UnexpectedDeviceError,
)

from .conftest import FakeSensor, make_block

_MODE_START = REGISTERS["SYSTEM__MODE_START"].address
_PAD_CTRL = REGISTERS["PAD_I2C_HV__EXTSUP_CONFIG"].address
_MODEL_ID = REGISTERS["IDENTIFICATION__MODEL_ID"].address

# Peak at bin 8 with 300 counts over an ambient of 10.
BINS = [10, 20, 15, 5, 5, 5, 60, 90, 310, 100, 50] + [10] * 13


@pytest.fixture
def tof(fake, clock) -> TOFSensor:
    return TOFSensor(fake, clock=clock)


def test_bring_up(tof, fake):
    assert tof.device.state is DeviceState.CONFIGURED
    assert tof.calibration.oscillator_frequency == pytest.approx(13e6)
    assert tof.config.preset.name == "medium range"
    assert fake.written(_PAD_CTRL) == []


def test_bring_up_2v8(fake, clock):
    TOFSensor(fake, clock=clock, io_2v8=True)
    assert fake.memory[_PAD_CTRL] & 0x01


def test_boot_timeout(clock):
    fake = FakeSensor(boot_polls=10_000, clock=clock)

    with pytest.raises(BootTimeout):
        TOFSensor(fake, clock=clock, boot_timeout_ms=50)

    assert clock.t >= 50


def test_unexpected_device(fake, clock):
    fake.memory[_MODEL_ID : _MODEL_ID + 2] = b"\x12\x34"

    with pytest.raises(UnexpectedDeviceError):
        TOFSensor(fake, clock=clock)


def test_identity_check_disabled(fake, clock):
    fake.memory[_MODEL_ID : _MODEL_ID + 2] = b"\x12\x34"
    tof = TOFSensor(fake, clock=clock, check_identity=False)
    assert tof.device.state is DeviceState.CONFIGURED


def test_get_raw(tof, fake):
    fake.result_block = make_block(BINS)
    tof.start_ranging()
    assert tof.get_raw() == pytest.approx(8.0116 * 15.0, abs=1e-2)


def test_measure(tof, fake):
    fake.result_block = make_block(BINS, stream_count=42)
    tof.start_ranging()
    result, estimate = tof.measure()
    assert result.stream_count == 42
    assert estimate.peak_bin == 8


def test_get_raw_invalid(tof, fake):
    fake.result_block = make_block(BINS, range_status=0x05)
    tof.start_ranging()

    with pytest.raises(RangeStatusError) as exc_info:
        tof.get_raw()

    assert exc_info.value.code == 0x05


def test_measure_timeout(fake, clock):
    tof = TOFSensor(fake, clock=clock, ready_timeout_ms=100)
    tof.start_ranging()
    fake.ready_after = None
    start = clock.t

    with pytest.raises(MeasurementTimeout):
        tof.measure()

    assert clock.t - start >= 100


def test_oscillator_scaling(fake, clock):
    fake.nvm[0x1C] = 0xD200
    tof = TOFSensor(fake, clock=clock, oscillator_scaling=True)
    frequency = 0xD200 / 4096 * 1e6
    assert tof.decoder.estimator.bin_width_a == pytest.approx(15.0 * 13e6 / frequency)


def test_min_peak_count(fake, clock):
    tof = TOFSensor(fake, clock=clock, min_peak_count=1000)
    fake.result_block = make_block(BINS)
    tof.start_ranging()
    assert tof.get_raw() == 8 * 15.0


def test_context_manager_stops_ranging(fake, clock):
    with TOFSensor(fake, clock=clock) as tof:
        tof.start_ranging()

    assert tof.device.state is DeviceState.CONFIGURED
    assert fake.written(_MODE_START)[-2:] == [b"\x80", b"\x80"]


def test_context_manager_idle(fake, clock):
    with TOFSensor(fake, clock=clock):
        pass

    assert b"\x80" not in fake.written(_MODE_START)


def test_set_address(tof, fake):
    tof.set_address(0x30)
    assert fake.address == 0x30
    assert tof.device.address == 0x30
    tof.start_ranging()
    assert tof.device.state is DeviceState.RANGING


def test_custom_address(clock):
    fake = FakeSensor(address=0x31, clock=clock)
    tof = TOFSensor(fake, clock=clock, address=0x31)
    assert tof.device.address == 0x31


@pytest.fixture
def owned_bus(mocker, fake):
    fake.close = mocker.Mock()
    mocker.patch("tofrange.sensor.I2CBus", return_value=fake)
    return fake


def test_failed_bring_up_closes_own_bus(owned_bus, clock):
    owned_bus.memory[_MODEL_ID : _MODEL_ID + 2] = b"\x12\x34"

    with pytest.raises(UnexpectedDeviceError):
        TOFSensor(clock=clock)

    owned_bus.close.assert_called_once()


def test_context_manager_closes_own_bus(owned_bus, clock):
    with TOFSensor(clock=clock) as tof:
        tof.start_ranging()

    owned_bus.close.assert_called_once()
    tof.close()
    owned_bus.close.assert_called_once()


def test_given_bus_left_open(fake, clock, mocker):
    fake.close = mocker.Mock()

    with TOFSensor(fake, clock=clock):
        pass

    fake.close.assert_not_called()
