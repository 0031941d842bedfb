"""Ranging presets.

A preset is the complete register image for one ranging mode, grouped the way
it has to be written: static, general and timing registers are plain writes,
the dynamic registers go through the grouped parameter hold in two batches.
"""

from dataclasses import dataclass, replace
from typing import Tuple

from tofrange.device.registers import REGISTERS, RegisterDescriptor

__all__ = (
    "MEDIUM_RANGE",
    "Preset",
    "RegisterWrite",
)


@dataclass(frozen=True)
class RegisterWrite:
    """One register write, `value` in the descriptor's natural units."""

    register: RegisterDescriptor
    value: int

    def to_bytes(self) -> bytes:
        return self.register.to_bytes(self.value)


def _writes(*pairs) -> Tuple[RegisterWrite, ...]:
    return tuple(RegisterWrite(REGISTERS[name], value) for name, value in pairs)


@dataclass(frozen=True)
class Preset:
    """Register image for one ranging mode.

    Attributes
    ----------
    name : str
    static, general, timing : tuple of :class:`RegisterWrite`
        Written in order, without grouped hold.
    dynamic_first, dynamic_second : tuple of :class:`RegisterWrite`
        Dynamic registers before and after the hold-continue marker.
    """

    name: str
    static: Tuple[RegisterWrite, ...]
    general: Tuple[RegisterWrite, ...]
    timing: Tuple[RegisterWrite, ...]
    dynamic_first: Tuple[RegisterWrite, ...]
    dynamic_second: Tuple[RegisterWrite, ...]

    @property
    def writes(self) -> Tuple[RegisterWrite, ...]:
        return (
            self.static
            + self.general
            + self.timing
            + self.dynamic_first
            + self.dynamic_second
        )

    def value(self, name: str) -> int:
        """Return the value this preset writes to register `name`."""
        for write in self.writes:
            if write.register.name == name:
                return write.value

        raise KeyError(name)

    def with_values(self, **values) -> "Preset":
        """Return a copy of this preset with some register values replaced."""
        unknown = set(values) - {w.register.name for w in self.writes}

        if unknown:
            raise KeyError(f"not in preset {self.name}: {sorted(unknown)}")

        def _update(group):
            return tuple(
                RegisterWrite(w.register, values.get(w.register.name, w.value))
                for w in group
            )

        return replace(
            self,
            static=_update(self.static),
            general=_update(self.general),
            timing=_update(self.timing),
            dynamic_first=_update(self.dynamic_first),
            dynamic_second=_update(self.dynamic_second),
        )

    @property
    def vcsel_period_a(self) -> int:
        """Phase A VCSEL period in PLL clocks."""
        return self.value("RANGE_CONFIG__VCSEL_PERIOD_A")

    @property
    def vcsel_period_b(self) -> int:
        """Phase B VCSEL period in PLL clocks."""
        return self.value("RANGE_CONFIG__VCSEL_PERIOD_B")


# Up to 3 m, 33 ms measurement time, histogram ranging.
MEDIUM_RANGE = Preset(
    name="medium range",
    static=_writes(
        ("GPIO__HV_MUX__CTRL", 0x01),  # interrupt active high
        ("ANA_CONFIG__SPAD_SEL_PULSEWIDTH", 0x02),
        ("ANA_CONFIG__VCSEL_PULSE_WIDTH_OFFSET", 0x08),
        ("ANA_CONFIG__FAST_OSC__CONFIG_CTRL", 0x00),
        ("SIGMA_ESTIMATOR__EFFECTIVE_PULSE_WIDTH_NS", 0x08),
        ("SIGMA_ESTIMATOR__EFFECTIVE_AMBIENT_WIDTH_NS", 0x10),
        ("SIGMA_ESTIMATOR__SIGMA_REF_MM", 0x01),
        ("ALGO__CROSSTALK_COMPENSATION_VALID_HEIGHT_MM", 0x01),
        ("ALGO__RANGE_IGNORE_VALID_HEIGHT_MM", 0xFF),
        ("ALGO__RANGE_MIN_CLIP", 0x00),
        ("ALGO__CONSISTENCY_CHECK__TOLERANCE", 0x02),
    ),
    general=_writes(
        ("SYSTEM__INTERRUPT_CONFIG_GPIO", 0x20),  # new sample ready
        ("CAL_CONFIG__VCSEL_START", 0x0B),
        ("CAL_CONFIG__REPEAT_RATE", 0x0000),
        ("GLOBAL_CONFIG__VCSEL_WIDTH", 0x02),
        ("PHASECAL_CONFIG__TIMEOUT_MACROP", 0x0D),
        ("PHASECAL_CONFIG__TARGET", 0x21),
        ("PHASECAL_CONFIG__OVERRIDE", 0x00),
        ("DSS_CONFIG__ROI_MODE_CONTROL", 0x01),
        ("SYSTEM__THRESH_RATE_HIGH", 0x0000),
        ("SYSTEM__THRESH_RATE_LOW", 0x0000),
        ("DSS_CONFIG__MANUAL_EFFECTIVE_SPADS_SELECT", 0x8C00),
        ("DSS_CONFIG__MANUAL_BLOCK_SELECT", 0x00),
        ("DSS_CONFIG__APERTURE_ATTENUATION", 0x38),
        ("DSS_CONFIG__MAX_SPADS_LIMIT", 0xFF),
        ("DSS_CONFIG__MIN_SPADS_LIMIT", 0x01),
    ),
    timing=_writes(
        ("MM_CONFIG__TIMEOUT_MACROP_A", 0x001A),
        ("MM_CONFIG__TIMEOUT_MACROP_B", 0x0020),
        ("RANGE_CONFIG__TIMEOUT_MACROP_A", 0x01CC),
        ("RANGE_CONFIG__VCSEL_PERIOD_A", 24),
        ("RANGE_CONFIG__TIMEOUT_MACROP_B", 0x01F5),
        ("RANGE_CONFIG__VCSEL_PERIOD_B", 20),
        ("RANGE_CONFIG__SIGMA_THRESH", 0x003C),
        ("RANGE_CONFIG__MIN_COUNT_RATE_RTN_LIMIT_MCPS", 0x0080),
        ("RANGE_CONFIG__VALID_PHASE_LOW", 0x08),
        ("RANGE_CONFIG__VALID_PHASE_HIGH", 0x78),
        ("SYSTEM__INTERMEASUREMENT_PERIOD", 33),  # ms
        ("SYSTEM__FRACTIONAL_ENABLE", 0x00),
    ),
    dynamic_first=_writes(
        ("SYSTEM__THRESH_HIGH", 0x0000),
        ("SYSTEM__THRESH_LOW", 0x0000),
        ("SYSTEM__ENABLE_XTALK_PER_QUADRANT", 0x00),
        ("SYSTEM__SEED_CONFIG", 0x02),
        # Window of interest and initial phase follow the VCSEL periods.
        ("SD_CONFIG__WOI_SD0", 0x0B),
        ("SD_CONFIG__WOI_SD1", 0x09),
        ("SD_CONFIG__INITIAL_PHASE_SD0", 0x0A),
        ("SD_CONFIG__INITIAL_PHASE_SD1", 0x0A),
    ),
    dynamic_second=_writes(
        ("SD_CONFIG__FIRST_ORDER_SELECT", 0x00),
        ("SD_CONFIG__QUANTIFIER", 0x02),
        ("ROI_CONFIG__USER_ROI_CENTRE_SPAD", 199),
        ("ROI_CONFIG__USER_ROI_REQUESTED_GLOBAL_XY_SIZE", 0xFF),  # 16x16
        ("SYSTEM__SEQUENCE_CONFIG", 0xFF),
    ),
)
