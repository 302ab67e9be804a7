from typing import Tuple
from typing_extensions import TypedDict

from .errors import ledger_error
from .ledger_math import checked_sub, mul_div_floor
from .params import BPS_DENOMINATOR, U64_MAX
from .state import ProtocolConfig


class FeeBreakdown(TypedDict):
    pool_fee: int
    creator_fee: int
    protocol_fee: int
    net_amount: int
    total_fees: int


def compute_fees(
    amount: int,
    pool_bps: int,
    creator_bps: int,
    protocol_bps: int
) -> Tuple[int, int, int, int]:
    """
    Split a stake into (pool_fee, creator_fee, protocol_fee, net).

    Each fee is floor(amount * bps / 10000); truncation dust stays in the net
    stake, so the four parts always sum to ``amount``.
    """
    if not isinstance(amount, int) or amount < 0 or amount > U64_MAX:
        raise ledger_error('Overflow', f"amount {amount!r} outside u64 range")
    for bps in (pool_bps, creator_bps, protocol_bps):
        if bps < 0 or bps > BPS_DENOMINATOR:
            raise ledger_error('InvalidFeeConfig', f"{bps}bps outside [0, {BPS_DENOMINATOR}]")

    pool_fee = mul_div_floor(amount, pool_bps, BPS_DENOMINATOR)
    creator_fee = mul_div_floor(amount, creator_bps, BPS_DENOMINATOR)
    protocol_fee = mul_div_floor(amount, protocol_bps, BPS_DENOMINATOR)

    net_amount = checked_sub(amount, pool_fee + creator_fee + protocol_fee)
    return pool_fee, creator_fee, protocol_fee, net_amount


def fee_breakdown(amount: int, config: ProtocolConfig) -> FeeBreakdown:
    """Fees for ``amount`` at the protocol's current rates."""
    pool_fee, creator_fee, protocol_fee, net_amount = compute_fees(
        amount,
        config['pool_fee_bps'],
        config['creator_fee_bps'],
        config['protocol_fee_bps'],
    )
    return {
        'pool_fee': pool_fee,
        'creator_fee': creator_fee,
        'protocol_fee': protocol_fee,
        'net_amount': net_amount,
        'total_fees': pool_fee + creator_fee + protocol_fee,
    }


def total_fee_bps(config: ProtocolConfig) -> int:
    return config['pool_fee_bps'] + config['creator_fee_bps'] + config['protocol_fee_bps']
