"""
IEEE-754 binary16 <-> binary32 conversion.

Half floats are carried around as raw ``uint16`` bit patterns, which is what the
detector consumes and produces. Encoding truncates the mantissa by default
(no rounding); ``RoundingMode.NEAREST_EVEN`` switches to IEEE round-to-nearest-even.
"""

from __future__ import annotations

import enum
import struct
from typing import Sequence, Union

import numpy as np


ArrayLike = Union[np.ndarray, Sequence[float]]


class RoundingMode(str, enum.Enum):
    TRUNCATE = "truncate"
    NEAREST_EVEN = "nearest_even"


_F16_POS_INF = 0x7C00
_F16_NEG_INF = 0xFC00
_F16_NAN = 0x7E00


def _f32_bits(value: float) -> int:
    with np.errstate(over="ignore"):
        return int(np.array(value, dtype=np.float32).view(np.uint32))


def f32_to_f16(value: float, rounding: RoundingMode = RoundingMode.TRUNCATE) -> int:
    """
    Convert a float to the bit pattern of the nearest-below binary16 value.

    Out-of-range magnitudes saturate to signed infinity, values below the
    smallest denormal flush to signed zero and NaN maps to ``0x7E00``.
    """

    if rounding is RoundingMode.NEAREST_EVEN:
        with np.errstate(over="ignore"):
            return int(np.array(value, dtype=np.float32).astype(np.float16).view(np.uint16))

    bits = _f32_bits(value)
    sign = bits >> 31
    exponent = (bits >> 23) & 0xFF
    mantissa = bits & 0x7FFFFF

    if exponent == 0xFF:
        if mantissa:
            return _F16_NAN
        return _F16_NEG_INF if sign else _F16_POS_INF

    exponent = exponent - 127 + 15
    if exponent >= 0x1F:
        return _F16_NEG_INF if sign else _F16_POS_INF

    if exponent <= 0:
        # Denormal: restore the implicit bit, then drop the 13 extra mantissa
        # bits plus one bit per step below the smallest normal exponent.
        mantissa = (mantissa | 0x800000) >> (14 - exponent)
        exponent = 0
    else:
        mantissa >>= 13

    return (sign << 15) | (exponent << 10) | mantissa


def f16_to_f32(bits: int) -> float:
    bits = int(bits) & 0xFFFF
    sign = (bits >> 15) & 0x1
    exponent = (bits >> 10) & 0x1F
    mantissa = bits & 0x3FF

    if exponent == 0x1F:
        if mantissa:
            return float("nan")
        return float("-inf") if sign else float("inf")

    if exponent == 0:
        if mantissa == 0:
            return -0.0 if sign else 0.0
        exponent = -14
        while not mantissa & 0x400:
            mantissa <<= 1
            exponent -= 1
        mantissa &= 0x3FF
        exponent += 127
    else:
        exponent = exponent - 15 + 127

    f32 = (sign << 31) | (exponent << 23) | (mantissa << 13)
    return struct.unpack("<f", struct.pack("<I", f32))[0]


def f32_array_to_f16(values: ArrayLike, rounding: RoundingMode = RoundingMode.TRUNCATE) -> np.ndarray:
    """
    Vectorized ``f32_to_f16``. Returns a ``uint16`` array with the input's shape.
    """

    with np.errstate(over="ignore"):
        arr = np.ascontiguousarray(values, dtype=np.float32)

    if rounding is RoundingMode.NEAREST_EVEN:
        with np.errstate(over="ignore"):
            return arr.astype(np.float16).view(np.uint16)

    bits = arr.view(np.uint32)
    sign = bits >> np.uint32(31)
    exponent = ((bits >> np.uint32(23)) & np.uint32(0xFF)).astype(np.int32)
    mantissa = bits & np.uint32(0x7FFFFF)
    half_exp = exponent - 127 + 15

    inf = np.where(sign == 1, _F16_NEG_INF, _F16_POS_INF).astype(np.uint32)
    normal = (
        (sign << np.uint32(15))
        | (np.clip(half_exp, 0, 0x1E).astype(np.uint32) << np.uint32(10))
        | (mantissa >> np.uint32(13))
    )
    # Shifts of 25+ clear the 24-bit significand; 31 keeps uint32 shifts defined.
    shift = np.clip(14 - half_exp, 0, 31).astype(np.uint32)
    denormal = (sign << np.uint32(15)) | ((mantissa | np.uint32(0x800000)) >> shift)

    out = np.where(half_exp <= 0, denormal, normal)
    out = np.where(half_exp >= 0x1F, inf, out)
    out = np.where(exponent == 0xFF, np.where(mantissa != 0, np.uint32(_F16_NAN), inf), out)
    return out.astype(np.uint16)


def f16_array_to_f32(bits: ArrayLike) -> np.ndarray:
    """
    Vectorized ``f16_to_f32``. Accepts ``uint16`` bit patterns or ``float16`` values.
    """

    arr = np.asarray(bits)
    if arr.dtype != np.float16:
        arr = (arr.astype(np.int64) & 0xFFFF).astype(np.uint16).view(np.float16)
    # binary16 -> binary32 widening is exact, so the hardware conversion is bit-identical
    # to the scalar path.
    return arr.astype(np.float32)
