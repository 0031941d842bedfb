"""Histogram readout and distance estimation.

Every measurement produces a 24-bin histogram of photon counts. Bins 0 to 5
only see ambient light; their mean is subtracted from every bin. The target
is the highest bin in the trusted range 6 to 17, refined to a fraction of a
bin by fitting a parabola through the peak and its two neighbours.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from tofrange.device.handle import DeviceHandle, DeviceState
from tofrange.device.presets import MEDIUM_RANGE, Preset
from tofrange.device.registers import REGISTERS
from tofrange.errors import RangeStatusError

__all__ = (
    "DistanceEstimate",
    "DistanceEstimator",
    "HistogramDecoder",
    "HistogramResult",
    "ambient_estimate",
    "find_peak",
    "interpolate_peak",
    "subtract_ambient",
)
logger = logging.getLogger(__name__)

RESULT_BLOCK_SIZE = 77
NUM_BINS = 24
BIN_BYTES = 3
_BINS_OFFSET = 5

AMBIENT_BINS = 6
PEAK_FIRST_BIN = 6
PEAK_LAST_BIN = 17
PHASE_B_FIRST_BIN = 12

RANGE_COMPLETE = 0x09
_RANGE_STATUS_MASK = 0x1F

# Bin width per VCSEL PLL clock at the nominal oscillator frequency.
MM_PER_VCSEL_PCLK = 0.625
NOMINAL_OSCILLATOR_FREQUENCY = 13e6
MIN_PEAK_COUNT = 8

_RESULT_START = REGISTERS["RESULT__INTERRUPT_STATUS"].address
_INTERRUPT_CLEAR = REGISTERS["SYSTEM__INTERRUPT_CLEAR"].address


@dataclass(frozen=True, eq=False)
class HistogramResult:
    """One measurement as read from the result registers.

    Attributes
    ----------
    interrupt_status : int
    range_status : int
        Raw range status byte. The low five bits are the device error code,
        the upper bits flag threshold hits.
    report_status : int
    stream_count : int
    bins : numpy.ndarray
        24 photon counts, each below 2**24.
    """

    interrupt_status: int
    range_status: int
    report_status: int
    stream_count: int
    bins: np.ndarray

    @classmethod
    def from_bytes(cls, block: bytes) -> "HistogramResult":
        """Decode the 77-byte result block.

        Bytes 0 to 3 hold interrupt, range and report status and the stream
        counter, byte 4 is unused, and bytes 5 to 76 hold 24 big-endian
        24-bit bin counts.
        """
        if len(block) != RESULT_BLOCK_SIZE:
            raise ValueError(
                f"result block must be {RESULT_BLOCK_SIZE} bytes, got {len(block)}"
            )

        raw = np.frombuffer(bytes(block[_BINS_OFFSET:]), dtype=np.uint8)
        raw = raw.reshape(NUM_BINS, BIN_BYTES).astype(np.uint32)
        bins = raw[:, 0] << 16 | raw[:, 1] << 8 | raw[:, 2]

        return cls(
            interrupt_status=block[0],
            range_status=block[1],
            report_status=block[2],
            stream_count=block[3],
            bins=bins,
        )

    @property
    def status_code(self) -> int:
        return self.range_status & _RANGE_STATUS_MASK

    @property
    def valid(self) -> bool:
        return self.status_code == RANGE_COMPLETE


def ambient_estimate(bins: np.ndarray) -> int:
    """Mean of the ambient-only bins, truncated to an integer."""
    return int(np.sum(bins[:AMBIENT_BINS], dtype=np.int64)) // AMBIENT_BINS


def subtract_ambient(bins: np.ndarray, ambient: int) -> np.ndarray:
    """Subtract `ambient` from every bin, clamping at zero."""
    return np.clip(np.asarray(bins, dtype=np.int64) - ambient, 0, None)


def find_peak(
    corrected: np.ndarray,
    first: int = PEAK_FIRST_BIN,
    last: int = PEAK_LAST_BIN,
) -> int:
    """Return the index of the highest bin in `first`..`last`.

    Ties go to the lowest index.
    """
    # argmax returns the first occurrence of the maximum.
    return first + int(np.argmax(corrected[first : last + 1]))


def interpolate_peak(corrected: np.ndarray, peak: int) -> Optional[float]:
    """Sub-bin offset of the true peak from a three point parabola fit.

    Returns
    -------
    offset : float or None
        Offset in bins, within [-0.5, 0.5], or None if `peak` is an edge bin
        or the three points are collinear.
    """
    if not 0 < peak < len(corrected) - 1:
        return None

    a, b, c = (int(v) for v in corrected[peak - 1 : peak + 2])
    denominator = a - 2 * b + c

    if denominator == 0:
        return None

    offset = 0.5 * (a - c) / denominator

    return float(np.clip(offset, -0.5, 0.5))


@dataclass(frozen=True)
class DistanceEstimate:
    """Distance derived from one histogram.

    Attributes
    ----------
    distance_mm : float or None
        None when the device reported an error status.
    valid : bool
        True if the device reported "range complete".
    peak_bin : int
    refined_bin : float
        `peak_bin` plus the sub-bin offset, if refinement applied.
    peak_count : int
        Ambient-corrected count in the peak bin. Low values mean low
        confidence even for valid measurements.
    ambient : int
        Ambient counts per bin.
    range_status : int
        Raw range status byte.
    coarse_distance_mm : float
        Distance of the peak bin itself.
    """

    distance_mm: Optional[float]
    valid: bool
    peak_bin: int
    refined_bin: float
    peak_count: int
    ambient: int
    range_status: int
    coarse_distance_mm: float

    @property
    def status_code(self) -> int:
        return self.range_status & _RANGE_STATUS_MASK

    @property
    def error(self) -> Optional[RangeStatusError]:
        return None if self.valid else RangeStatusError(self.status_code)

    def raise_for_status(self):
        """Raise :class:`RangeStatusError` if the measurement is not valid."""
        if not self.valid:
            raise self.error


class DistanceEstimator:
    """Convert histograms to distances.

    Bins 0 to 11 belong to ranging phase A and bins 12 to 23 to phase B,
    each with its own bin width.

    Parameters
    ----------
    bin_width_a : float, optional
        Phase A bin width in mm. Defaults to 15.0.
    bin_width_b : float, optional
        Phase B bin width in mm. Defaults to 12.5.
    min_peak_count : int, optional
        Sub-bin refinement is only done when the corrected peak count
        exceeds this.
    """

    def __init__(
        self,
        bin_width_a: float = 15.0,
        bin_width_b: float = 12.5,
        min_peak_count: int = MIN_PEAK_COUNT,
    ):
        self.bin_width_a = bin_width_a
        self.bin_width_b = bin_width_b
        self.min_peak_count = min_peak_count

    @classmethod
    def from_preset(
        cls,
        preset: Preset = MEDIUM_RANGE,
        oscillator_frequency: float = None,
        min_peak_count: int = MIN_PEAK_COUNT,
    ) -> "DistanceEstimator":
        """Derive bin widths from the preset's VCSEL periods.

        If `oscillator_frequency` (Hz, from NVM) is given, the widths are
        scaled from the nominal oscillator frequency to the measured one.
        """
        scale = 1.0

        if oscillator_frequency is not None:
            scale = NOMINAL_OSCILLATOR_FREQUENCY / oscillator_frequency

        return cls(
            bin_width_a=MM_PER_VCSEL_PCLK * preset.vcsel_period_a * scale,
            bin_width_b=MM_PER_VCSEL_PCLK * preset.vcsel_period_b * scale,
            min_peak_count=min_peak_count,
        )

    def bin_width(self, peak_bin: int) -> float:
        return self.bin_width_a if peak_bin < PHASE_B_FIRST_BIN else self.bin_width_b

    def estimate(self, result: HistogramResult) -> DistanceEstimate:
        ambient = ambient_estimate(result.bins)
        corrected = subtract_ambient(result.bins, ambient)
        peak = find_peak(corrected)
        peak_count = int(corrected[peak])
        width = self.bin_width(peak)
        refined = float(peak)

        if peak_count > self.min_peak_count:
            offset = interpolate_peak(corrected, peak)

            if offset is not None:
                refined += offset

        distance = refined * width if result.valid else None
        logger.debug(
            f"stream {result.stream_count}: peak bin {peak} ({peak_count} counts), "
            f"ambient {ambient}, status {result.range_status:#04x}"
        )

        return DistanceEstimate(
            distance_mm=distance,
            valid=result.valid,
            peak_bin=peak,
            refined_bin=refined,
            peak_count=peak_count,
            ambient=ambient,
            range_status=result.range_status,
            coarse_distance_mm=peak * width,
        )


class HistogramDecoder:
    """Read results of a ranging device.

    Parameters
    ----------
    device : :class:`DeviceHandle`
    estimator : :class:`DistanceEstimator`, optional
    """

    def __init__(self, device: DeviceHandle, estimator: DistanceEstimator = None):
        self._device = device
        self.estimator = estimator if estimator is not None else DistanceEstimator()

    def read_result(self) -> Tuple[HistogramResult, DistanceEstimate]:
        """Read the latest measurement and release the result registers.

        Call after :meth:`RangingController.poll_ready` reports a new
        measurement.
        """
        self._device.require(DeviceState.RANGING)
        block = self._device.read(RESULT_BLOCK_SIZE, _RESULT_START)
        result = HistogramResult.from_bytes(block)
        estimate = self.estimator.estimate(result)
        self._device.write_byte(0x01, _INTERRUPT_CLEAR)

        return result, estimate
