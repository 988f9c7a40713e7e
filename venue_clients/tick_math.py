"""
Fixed-point tick math for concentrated-liquidity venues.

Converts the venue's logarithmic price representation (ticks, where
``price = 1.0001 ** tick``) into linear prices scaled by ``PRICE_PRECISION``.
Everything here works on Python integers so results agree bit-for-bit with the
venue's own 256-bit arithmetic.
"""

from __future__ import annotations

from typing import Tuple

MIN_TICK = -887272
MAX_TICK = 887272

MIN_SQRT_RATIO = 4295128739
MAX_SQRT_RATIO = 1461446703485210103287273052203988822378723970342

Q64 = 1 << 64
Q96 = 1 << 96
Q128 = 1 << 128
Q192 = 1 << 192

UINT128_MAX = (1 << 128) - 1
UINT144_MAX = (1 << 144) - 1
UINT256_MAX = (1 << 256) - 1

PRICE_PRECISION = 10**18

# sqrt(1.0001) ** -(2 ** bit) in Q128, one entry per bit of |tick| above bit 0
_TICK_BIT_RATIOS: Tuple[Tuple[int, int], ...] = (
    (0x2, 0xFFF97272373D413259A46990580E213A),
    (0x4, 0xFFF2E50F5F656932EF12357CF3C7FDCC),
    (0x8, 0xFFE5CACA7E10E4E61C3624EAA0941CD0),
    (0x10, 0xFFCB9843D60F6159C9DB58835C926644),
    (0x20, 0xFF973B41FA98C081472E6896DFB254C0),
    (0x40, 0xFF2EA16466C96A3843EC78B326B52861),
    (0x80, 0xFE5DEE046A99A2A811C461F1969C3053),
    (0x100, 0xFCBE86C7900A88AEDCFFC83B479AA3A4),
    (0x200, 0xF987A7253AC413176F2B074CF7815E54),
    (0x400, 0xF3392B0822B70005940C7A398E4B70F3),
    (0x800, 0xE7159475A2C29B7443B29C7FA6E889D9),
    (0x1000, 0xD097F3BDFD2022B8845AD8F792AA5825),
    (0x2000, 0xA9F746462D870FDF8A65DC1F90E061E5),
    (0x4000, 0x70D869A156D2A1B890BB3DF62BAF32F7),
    (0x8000, 0x31BE135F97D08FD981231505542FCFA6),
    (0x10000, 0x9AA508B5B7A84E1C677DE54F3E99BC9),
    (0x20000, 0x5D6AF8DEDB81196699C329225EE604),
    (0x40000, 0x2216E584F5FA1EA926041BEDFE98),
    (0x80000, 0x48A170391F7DC42444E8FA2),
)
_TICK_BIT0_RATIO = 0xFFFCB933BD6FAD37AA2D162D1A594001


def sort_assets(asset_a: str, asset_b: str) -> Tuple[str, str]:
    """Return the pair in venue order (lowest identifier first)."""
    if asset_a.lower() < asset_b.lower():
        return asset_a, asset_b
    return asset_b, asset_a


def is_base_first(base_asset: str, quote_asset: str) -> bool:
    """True when ``base_asset`` is the pool's first token."""
    return sort_assets(base_asset, quote_asset)[0] == base_asset


def average_tick(cumulative_now: int, cumulative_past: int, interval: int) -> int:
    """
    Arithmetic mean tick over ``interval`` seconds.

    Rounds toward negative infinity, matching the venue's oracle library:
    a delta of -100 over 60 seconds averages to -2, not -1.

    Raises:
        ValueError: If ``interval`` is zero.
    """
    if interval == 0:
        raise ValueError("TWAP interval must be non-zero")

    delta = cumulative_now - cumulative_past
    # floor division already rounds toward -inf for negative deltas
    return delta // interval


def get_sqrt_ratio_at_tick(tick: int) -> int:
    """
    Compute ``sqrt(1.0001 ** tick) * 2 ** 96`` as an integer.

    Raises:
        ValueError: If ``tick`` lies outside [MIN_TICK, MAX_TICK].
    """
    abs_tick = -tick if tick < 0 else tick
    if abs_tick > MAX_TICK:
        raise ValueError(f"Tick {tick} outside supported range")

    ratio = _TICK_BIT0_RATIO if abs_tick & 0x1 else Q128
    for bit, constant in _TICK_BIT_RATIOS:
        if abs_tick & bit:
            ratio = (ratio * constant) >> 128

    if tick > 0:
        ratio = UINT256_MAX // ratio

    # Q128 -> Q96, rounding up so get_tick_at_sqrt_ratio stays consistent
    sqrt_price_x96 = ratio >> 32
    if ratio % (1 << 32):
        sqrt_price_x96 += 1
    return sqrt_price_x96


def price_ratio_from_sqrt(sqrt_price_x96: int) -> Tuple[int, int]:
    """
    Square a sqrt price into ``(ratio, denominator)``.

    The denominator is a power of two picked by the magnitude of the input so
    intermediate values stay inside 256 bits on the venue side.
    """
    if sqrt_price_x96 <= UINT128_MAX:
        return sqrt_price_x96 * sqrt_price_x96, Q192
    if sqrt_price_x96 <= UINT144_MAX:
        return (sqrt_price_x96 * sqrt_price_x96) >> 64, Q128
    return (sqrt_price_x96 * sqrt_price_x96) >> 128, Q64


def sqrt_price_to_price(
    sqrt_price_x96: int,
    base_decimals: int,
    quote_decimals: int,
    base_is_first: bool,
) -> int:
    """
    Price of one whole base unit in whole quote units, scaled by 1e18.

    When the base asset is the pool's second token the numerator and
    denominator swap roles instead of inverting the finished price.
    """
    ratio, denominator = price_ratio_from_sqrt(sqrt_price_x96)

    if base_is_first:
        numerator = ratio
    else:
        numerator, denominator = denominator, ratio

    if base_decimals >= quote_decimals:
        numerator *= 10 ** (base_decimals - quote_decimals)
    else:
        denominator *= 10 ** (quote_decimals - base_decimals)

    return numerator * PRICE_PRECISION // denominator


def tick_to_price(
    tick: int,
    base_decimals: int,
    quote_decimals: int,
    base_is_first: bool,
) -> int:
    """Convert a tick to a 1e18-scaled quote-per-base price."""
    sqrt_price_x96 = get_sqrt_ratio_at_tick(tick)
    return sqrt_price_to_price(sqrt_price_x96, base_decimals, quote_decimals, base_is_first)
