"""Register map of the ranging sensor.

Only the registers that the driver touches are listed. Each register is a
:class:`RegisterDescriptor`; the same table is used to write configuration
presets and to check register contents in tests.
"""

from dataclasses import dataclass
from typing import Callable, Optional

__all__ = (
    "RegisterDescriptor",
    "REGISTERS",
    "decode_vcsel_period",
    "encode_vcsel_period",
)


def encode_vcsel_period(pclks: int) -> int:
    """Encode a VCSEL period in PLL clocks as stored on the device."""
    if pclks % 2 or pclks < 2:
        raise ValueError(f"VCSEL period must be an even number of clocks: {pclks}")

    return (pclks >> 1) - 1


def decode_vcsel_period(value: int) -> int:
    """Decode a stored VCSEL period register to PLL clocks."""
    return (value + 1) << 1


@dataclass(frozen=True)
class RegisterDescriptor:
    """A named register.

    Attributes
    ----------
    name : str
    address : int
        16-bit register address.
    width : int
        Width in bytes, 1 to 4. Multi-byte registers are big-endian.
    encode : callable, optional
        Converts a value in natural units to the raw register value.
    decode : callable, optional
        Converts a raw register value to natural units.
    """

    name: str
    address: int
    width: int = 1
    encode: Optional[Callable[[int], int]] = None
    decode: Optional[Callable[[int], int]] = None

    def to_bytes(self, value: int) -> bytes:
        raw = self.encode(value) if self.encode is not None else value

        if not 0 <= raw < 1 << (8 * self.width):
            raise ValueError(f"{self.name}: {raw} does not fit in {self.width} byte(s)")

        return raw.to_bytes(self.width, "big")

    def from_bytes(self, data: bytes) -> int:
        raw = int.from_bytes(data, "big")

        return self.decode(raw) if self.decode is not None else raw


def _r(name, address, width=1, encode=None, decode=None):
    return RegisterDescriptor(name, address, width, encode, decode)


_TABLE = (
    # Device control
    _r("SOFT_RESET", 0x0000),
    _r("I2C_SLAVE__DEVICE_ADDRESS", 0x0001),
    _r("PAD_I2C_HV__EXTSUP_CONFIG", 0x002E),
    _r("GPIO__HV_MUX__CTRL", 0x0030),
    _r("GPIO__TIO_HV_STATUS", 0x0031),
    _r("FIRMWARE__SYSTEM_STATUS", 0x00E5),
    _r("IDENTIFICATION__MODEL_ID", 0x010F, 2),
    _r("FIRMWARE__ENABLE", 0x0401),
    _r("POWER_MANAGEMENT__GO1_POWER_FORCE", 0x0419),
    # NVM controller
    _r("RANGING_CORE__NVM_CTRL__PDN", 0x01AC),
    _r("RANGING_CORE__NVM_CTRL__MODE", 0x01AD),
    _r("RANGING_CORE__NVM_CTRL__PULSE_WIDTH", 0x01AE, 2),
    _r("RANGING_CORE__NVM_CTRL__ADDR", 0x01B0),
    _r("RANGING_CORE__NVM_CTRL__READN", 0x01B1),
    _r("RANGING_CORE__NVM_CTRL__DATAOUT", 0x01B2, 4),
    _r("RANGING_CORE__CLK_CTRL1", 0x01BB),
    # Static configuration
    _r("ANA_CONFIG__SPAD_SEL_PULSEWIDTH", 0x0033),
    _r("ANA_CONFIG__VCSEL_PULSE_WIDTH_OFFSET", 0x0034),
    _r("ANA_CONFIG__FAST_OSC__CONFIG_CTRL", 0x0035),
    _r("SIGMA_ESTIMATOR__EFFECTIVE_PULSE_WIDTH_NS", 0x0036),
    _r("SIGMA_ESTIMATOR__EFFECTIVE_AMBIENT_WIDTH_NS", 0x0037),
    _r("SIGMA_ESTIMATOR__SIGMA_REF_MM", 0x0038),
    _r("ALGO__CROSSTALK_COMPENSATION_VALID_HEIGHT_MM", 0x0039),
    _r("ALGO__RANGE_IGNORE_VALID_HEIGHT_MM", 0x003E),
    _r("ALGO__RANGE_MIN_CLIP", 0x003F),
    _r("ALGO__CONSISTENCY_CHECK__TOLERANCE", 0x0040),
    # General configuration
    _r("SYSTEM__INTERRUPT_CONFIG_GPIO", 0x0046),
    _r("CAL_CONFIG__VCSEL_START", 0x0047),
    _r("CAL_CONFIG__REPEAT_RATE", 0x0048, 2),
    _r("GLOBAL_CONFIG__VCSEL_WIDTH", 0x004A),
    _r("PHASECAL_CONFIG__TIMEOUT_MACROP", 0x004B),
    _r("PHASECAL_CONFIG__TARGET", 0x004C),
    _r("PHASECAL_CONFIG__OVERRIDE", 0x004D),
    _r("DSS_CONFIG__ROI_MODE_CONTROL", 0x004F),
    _r("SYSTEM__THRESH_RATE_HIGH", 0x0050, 2),
    _r("SYSTEM__THRESH_RATE_LOW", 0x0052, 2),
    _r("DSS_CONFIG__MANUAL_EFFECTIVE_SPADS_SELECT", 0x0054, 2),
    _r("DSS_CONFIG__MANUAL_BLOCK_SELECT", 0x0056),
    _r("DSS_CONFIG__APERTURE_ATTENUATION", 0x0057),
    _r("DSS_CONFIG__MAX_SPADS_LIMIT", 0x0058),
    _r("DSS_CONFIG__MIN_SPADS_LIMIT", 0x0059),
    # Timing configuration
    _r("MM_CONFIG__TIMEOUT_MACROP_A", 0x005A, 2),
    _r("MM_CONFIG__TIMEOUT_MACROP_B", 0x005C, 2),
    _r("RANGE_CONFIG__TIMEOUT_MACROP_A", 0x005E, 2),
    _r("RANGE_CONFIG__VCSEL_PERIOD_A", 0x0060, 1,
       encode_vcsel_period, decode_vcsel_period),
    _r("RANGE_CONFIG__TIMEOUT_MACROP_B", 0x0061, 2),
    _r("RANGE_CONFIG__VCSEL_PERIOD_B", 0x0063, 1,
       encode_vcsel_period, decode_vcsel_period),
    _r("RANGE_CONFIG__SIGMA_THRESH", 0x0064, 2),
    _r("RANGE_CONFIG__MIN_COUNT_RATE_RTN_LIMIT_MCPS", 0x0066, 2),
    _r("RANGE_CONFIG__VALID_PHASE_LOW", 0x0069),
    _r("RANGE_CONFIG__VALID_PHASE_HIGH", 0x006A),
    _r("SYSTEM__INTERMEASUREMENT_PERIOD", 0x006C, 4),
    _r("SYSTEM__FRACTIONAL_ENABLE", 0x0070),
    # Dynamic configuration, written under grouped parameter hold
    _r("SYSTEM__GROUPED_PARAMETER_HOLD_0", 0x0071),
    _r("SYSTEM__THRESH_HIGH", 0x0072, 2),
    _r("SYSTEM__THRESH_LOW", 0x0074, 2),
    _r("SYSTEM__ENABLE_XTALK_PER_QUADRANT", 0x0076),
    _r("SYSTEM__SEED_CONFIG", 0x0077),
    _r("SD_CONFIG__WOI_SD0", 0x0078),
    _r("SD_CONFIG__WOI_SD1", 0x0079),
    _r("SD_CONFIG__INITIAL_PHASE_SD0", 0x007A),
    _r("SD_CONFIG__INITIAL_PHASE_SD1", 0x007B),
    _r("SYSTEM__GROUPED_PARAMETER_HOLD_1", 0x007C),
    _r("SD_CONFIG__FIRST_ORDER_SELECT", 0x007D),
    _r("SD_CONFIG__QUANTIFIER", 0x007E),
    _r("ROI_CONFIG__USER_ROI_CENTRE_SPAD", 0x007F),
    _r("ROI_CONFIG__USER_ROI_REQUESTED_GLOBAL_XY_SIZE", 0x0080),
    _r("SYSTEM__SEQUENCE_CONFIG", 0x0081),
    _r("SYSTEM__GROUPED_PARAMETER_HOLD", 0x0082),
    # System control
    _r("SYSTEM__INTERRUPT_CLEAR", 0x0086),
    _r("SYSTEM__MODE_START", 0x0087),
    # Results
    _r("RESULT__INTERRUPT_STATUS", 0x0088),
    _r("RESULT__RANGE_STATUS", 0x0089),
)

REGISTERS = {descriptor.name: descriptor for descriptor in _TABLE}
