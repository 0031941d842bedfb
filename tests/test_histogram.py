import numpy as np
import pytest

from tofrange.device import DistanceEstimator, HistogramDecoder, HistogramResult
from tofrange.device.histogram import (
    ambient_estimate,
    find_peak,
    interpolate_peak,
    subtract_ambient,
)
from tofrange.device.presets import MEDIUM_RANGE
from tofrange.device.registers import REGISTERS
from tofrange.errors import RangeStatusError, StateError

from .conftest import make_block

_INTERRUPT_CLEAR = REGISTERS["SYSTEM__INTERRUPT_CLEAR"].address

AMBIENT = [10, 20, 15, 5, 5, 5]
# Corrected peak 300 at bin 8 with neighbours 80 and 90 (ambient 10).
BINS = AMBIENT + [60, 90, 310, 100, 50] + [10] * 13


def _result(bins=BINS, range_status=0x09):
    return HistogramResult.from_bytes(make_block(bins, range_status))


def test_decode_block():
    bins = list(range(0, 24 * 0x10000, 0x10000))
    bins[-1] = 0xFFFFFF
    result = HistogramResult.from_bytes(make_block(bins, 0x09, stream_count=7))
    assert result.range_status == 0x09
    assert result.stream_count == 7
    assert result.interrupt_status == 0x01
    assert result.bins.tolist() == bins
    assert len(result.bins) == 24


@pytest.mark.parametrize("length", [0, 76, 78])
def test_decode_wrong_length(length):
    with pytest.raises(ValueError):
        HistogramResult.from_bytes(bytes(length))


def test_ambient_estimate_truncates():
    assert ambient_estimate(np.array(AMBIENT + [100, 500, 300] + [0] * 15)) == 10
    assert ambient_estimate(np.array([1, 1, 1, 1, 1, 2] + [0] * 18)) == 1


def test_subtract_ambient_clamps():
    corrected = subtract_ambient(np.array([5, 10, 15], dtype=np.uint32), 10)
    assert corrected.tolist() == [0, 0, 5]


def test_find_peak():
    corrected = np.zeros(24, dtype=np.int64)
    corrected[6:11] = [50, 80, 300, 90, 40]
    assert find_peak(corrected) == 8


def test_find_peak_tie_lowest_index():
    corrected = np.zeros(24, dtype=np.int64)
    corrected[9] = 200
    corrected[14] = 200
    assert find_peak(corrected) == 9


def test_find_peak_ignores_untrusted_bins():
    corrected = np.zeros(24, dtype=np.int64)
    corrected[3] = 1000
    corrected[20] = 1000
    corrected[15] = 10
    assert find_peak(corrected) == 15


def test_interpolate_peak():
    corrected = np.zeros(24, dtype=np.int64)
    corrected[7:10] = [80, 300, 90]
    offset = interpolate_peak(corrected, 8)
    assert offset == pytest.approx(0.5 * (80 - 90) / (80 - 600 + 90))
    assert 8 + offset == pytest.approx(8.0116, abs=1e-4)


def test_interpolate_flat_peak():
    corrected = np.zeros(24, dtype=np.int64)
    corrected[7:10] = [100, 100, 100]
    assert interpolate_peak(corrected, 8) is None


def test_interpolate_edge_bins():
    corrected = np.arange(24)
    assert interpolate_peak(corrected, 0) is None
    assert interpolate_peak(corrected, 23) is None


def test_interpolate_offset_clamped():
    corrected = np.zeros(24, dtype=np.int64)
    corrected[7:10] = [0, 10, 100]
    assert interpolate_peak(corrected, 8) == -0.5


def test_estimate():
    estimate = DistanceEstimator().estimate(_result())
    assert estimate.valid
    assert estimate.ambient == 10
    assert estimate.peak_bin == 8
    assert estimate.peak_count == 300
    assert estimate.coarse_distance_mm == 120
    assert estimate.refined_bin == pytest.approx(8.0116, abs=1e-4)
    assert estimate.distance_mm == pytest.approx(8.0116 * 15.0, abs=1e-3)
    assert estimate.error is None
    estimate.raise_for_status()


def test_estimate_flat_peak_uses_coarse_distance():
    bins = [0, 0, 0, 0, 0, 120, 120, 120] + [20] * 16
    estimate = DistanceEstimator().estimate(_result(bins))
    assert estimate.ambient == 20
    assert estimate.peak_bin == 6
    assert estimate.refined_bin == 6
    assert estimate.distance_mm == 6 * 15.0


def test_estimate_phase_b_width():
    bins = AMBIENT + [10] * 8 + [510] + [10] * 9
    estimate = DistanceEstimator(min_peak_count=1000).estimate(_result(bins))
    assert estimate.peak_bin == 14
    assert estimate.distance_mm == 14 * 12.5


def test_estimate_weak_peak_not_refined():
    bins = AMBIENT + [10, 15, 18, 12] + [10] * 14
    estimate = DistanceEstimator(min_peak_count=8).estimate(_result(bins))
    assert estimate.peak_count == 8
    assert estimate.refined_bin == estimate.peak_bin


def test_estimate_invalid_status():
    estimate = DistanceEstimator().estimate(_result(range_status=0x02))
    assert not estimate.valid
    assert estimate.distance_mm is None
    assert estimate.peak_bin == 8
    assert estimate.error == RangeStatusError(0x02)

    with pytest.raises(RangeStatusError) as exc_info:
        estimate.raise_for_status()

    assert exc_info.value.code == 0x02


def test_range_status_upper_bits_ignored():
    assert _result(range_status=0xE9).valid


def test_raw_range_status_kept():
    result = _result(range_status=0xE2)
    assert result.range_status == 0xE2
    assert result.status_code == 0x02

    estimate = DistanceEstimator().estimate(result)
    assert estimate.range_status == 0xE2
    assert estimate.error.code == 0x02


def test_estimator_from_preset():
    estimator = DistanceEstimator.from_preset(MEDIUM_RANGE)
    assert estimator.bin_width_a == pytest.approx(15.0)
    assert estimator.bin_width_b == pytest.approx(12.5)


def test_estimator_oscillator_scaling():
    estimator = DistanceEstimator.from_preset(MEDIUM_RANGE, oscillator_frequency=13.13e6)
    assert estimator.bin_width_a == pytest.approx(15.0 * 13 / 13.13)


def test_read_result(ranging, configured, fake):
    fake.result_block = make_block(BINS)
    before = len(fake.log)
    result, estimate = HistogramDecoder(configured).read_result()
    assert fake.log[before] == ("r", 0x0088, 77)
    assert fake.log[before + 1] == ("w", _INTERRUPT_CLEAR, b"\x01")
    assert len(fake.log) == before + 2
    assert result.bins.tolist() == BINS
    assert estimate.peak_bin == 8


def test_read_result_requires_ranging(configured):
    with pytest.raises(StateError):
        HistogramDecoder(configured).read_result()
