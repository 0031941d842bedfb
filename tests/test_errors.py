import pytest

from tofrange.errors import (
    RANGE_STATUS_MESSAGES,
    BootTimeout,
    BusError,
    InvalidAddress,
    MeasurementTimeout,
    NvmReadFailure,
    RangeStatusError,
)
from tofrange.timing import Clock


def test_status_codes_complete():
    assert sorted(RANGE_STATUS_MESSAGES) == list(range(0x17))
    assert RANGE_STATUS_MESSAGES[0x09] == "range complete"


def test_range_status_error():
    error = RangeStatusError(0x02)
    assert error.code == 0x02
    assert "watchdog" in error.message
    assert "0x02" in str(error)
    assert error == RangeStatusError(0x02)
    assert error != RangeStatusError(0x04)


def test_range_status_error_unknown_code():
    assert RangeStatusError(0x1F).message == "unknown status"


@pytest.mark.parametrize(
    "error, base",
    [
        (BusError, OSError),
        (NvmReadFailure, BusError),
        (BootTimeout, TimeoutError),
        (MeasurementTimeout, TimeoutError),
        (InvalidAddress, ValueError),
    ],
)
def test_error_categories(error, base):
    assert issubclass(error, base)


def test_clock(mocker):
    sleep = mocker.patch("tofrange.timing.time.sleep")
    clock = Clock()
    clock.sleep_ms(5)
    clock.sleep_us(250)
    assert sleep.call_args_list[0].args[0] == pytest.approx(5e-3)
    assert sleep.call_args_list[1].args[0] == pytest.approx(250e-6)


def test_clock_monotonic(mocker):
    mocker.patch("tofrange.timing.time.monotonic", return_value=1.5)
    assert Clock().now_ms() == 1500
