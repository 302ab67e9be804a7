from .errors import ledger_error

# Market bounds
MIN_OUTCOMES = 2
MAX_OUTCOMES = 10
MAX_TITLE_LEN = 128
MAX_DESCRIPTION_LEN = 512
MAX_OUTCOME_LEN = 64
MAX_ORACLE_EVENT_ID_LEN = 64

# Oracle bounds
MAX_ORACLE_NAME_LEN = 64
MAX_DATA_SOURCE_LEN = 256
NUM_CATEGORIES = 12

# License bounds
LICENSE_KEY_LEN = 32
MAX_LICENSE_DOMAINS = 5
MAX_DOMAIN_LEN = 64
MAX_LICENSE_WALLETS = 10

# Fees, in basis points
DEFAULT_PROTOCOL_FEE_BPS = 50
DEFAULT_CREATOR_FEE_BPS = 50
DEFAULT_POOL_FEE_BPS = 500
MAX_TOTAL_FEE_BPS = 1000
BPS_DENOMINATOR = 10000

# Widths of the persisted integer fields
U32_MAX = 2**32 - 1
U64_MAX = 2**64 - 1
U128_MAX = 2**128 - 1


def validate_fee_config(protocol_fee_bps: int, creator_fee_bps: int, pool_fee_bps: int) -> None:
    for bps in (protocol_fee_bps, creator_fee_bps, pool_fee_bps):
        if not isinstance(bps, int) or bps < 0:
            raise ledger_error('InvalidFeeConfig', f"fee rates must be non-negative integers, got {bps!r}")
    total = protocol_fee_bps + creator_fee_bps + pool_fee_bps
    if total > MAX_TOTAL_FEE_BPS:
        raise ledger_error('InvalidFeeConfig', f"total fee {total}bps exceeds {MAX_TOTAL_FEE_BPS}bps")
