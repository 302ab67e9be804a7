from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional
from typing_extensions import TypedDict

from .errors import ledger_error
from .params import U32_MAX


class MarketCategory(IntEnum):
    POLITICS = 0
    SPORTS = 1
    FINANCE = 2
    CRYPTO = 3
    GEOPOLITICS = 4
    EARNINGS = 5
    TECH = 6
    CULTURE = 7
    WORLD = 8
    ECONOMY = 9
    ELECTIONS = 10
    MENTIONS = 11

    @property
    def label(self) -> str:
        return self.name.capitalize()


class LicenseType(IntEnum):
    BASIC = 0
    PRO = 1
    ENTERPRISE = 2
    CUSTOM = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()


class MarketStatus(str, Enum):
    OPEN = 'OPEN'
    RESOLVED = 'RESOLVED'
    CANCELLED = 'CANCELLED'


class LicenseFeatures(TypedDict):
    can_create_markets: bool
    can_use_oracles: bool
    can_create_private_markets: bool
    can_set_custom_fees: bool


# Per-tier defaults applied at issuance. Custom starts from the Basic baseline
# and is widened through update_license.
LICENSE_TYPE_FEATURES: Dict[LicenseType, LicenseFeatures] = {
    LicenseType.BASIC: {
        'can_create_markets': True,
        'can_use_oracles': False,
        'can_create_private_markets': False,
        'can_set_custom_fees': False,
    },
    LicenseType.PRO: {
        'can_create_markets': True,
        'can_use_oracles': True,
        'can_create_private_markets': True,
        'can_set_custom_fees': False,
    },
    LicenseType.ENTERPRISE: {
        'can_create_markets': True,
        'can_use_oracles': True,
        'can_create_private_markets': True,
        'can_set_custom_fees': True,
    },
    LicenseType.CUSTOM: {
        'can_create_markets': True,
        'can_use_oracles': False,
        'can_create_private_markets': False,
        'can_set_custom_fees': False,
    },
}

LICENSE_TYPE_MAX_MARKETS: Dict[LicenseType, int] = {
    LicenseType.BASIC: 5,
    LicenseType.PRO: 50,
    LicenseType.ENTERPRISE: U32_MAX,
    LicenseType.CUSTOM: U32_MAX,
}


class ProtocolConfig(TypedDict):
    authority: str
    treasury: str
    protocol_fee_bps: int
    creator_fee_bps: int
    pool_fee_bps: int
    total_markets: int
    total_volume: int
    total_oracles: int
    total_licenses: int
    require_license: bool


class License(TypedDict):
    license_key: str  # hex of the 32-byte key
    holder: str
    license_type: LicenseType
    features: LicenseFeatures
    allowed_domains: List[str]
    allowed_wallets: List[str]
    max_markets: int
    markets_created: int
    is_active: bool
    is_transferable: bool
    issued_at: int
    expires_at: int  # 0 = never
    last_used_at: int
    issued_by: str


class Oracle(TypedDict):
    oracle_id: int
    authority: str
    name: str
    categories: List[bool]  # one slot per MarketCategory ordinal
    data_source: str
    is_active: bool
    markets_resolved: int
    registered_at: int
    last_resolution_at: int


class Outcome(TypedDict):
    label: str
    total_amount: int
    bettor_count: int


class Market(TypedDict):
    market_id: int
    creator: str
    creator_fee_wallet: str
    token_mint: str
    category: MarketCategory
    oracle: Optional[int]
    oracle_event_id: str
    title: str
    description: str
    bet_amount: int
    betting_deadline: int
    resolution_deadline: int
    status: MarketStatus
    winning_outcome: Optional[int]
    total_pool: int
    bonus_pool: int
    outcomes: List[Outcome]
    created_at: int
    resolved_at: int
    resolved_by_oracle: bool
    license_key: Optional[str]


class Bet(TypedDict):
    market_id: int
    bettor: str
    outcome_index: int
    original_amount: int
    pool_amount: int
    claimed: bool
    placed_at: int


def decode_category(value: int | MarketCategory) -> MarketCategory:
    try:
        return MarketCategory(value)
    except ValueError:
        raise ledger_error('InvalidCategory', f"unknown category code {value!r}") from None


def decode_license_type(value: int | LicenseType) -> LicenseType:
    try:
        return LicenseType(value)
    except ValueError:
        raise ledger_error('InvalidLicenseType', f"unknown license type code {value!r}") from None


def features_for_license_type(license_type: LicenseType) -> LicenseFeatures:
    return dict(LICENSE_TYPE_FEATURES[license_type])  # type: ignore[return-value]


def market_vault_id(market_id: int) -> str:
    return f"market_vault:{market_id}"


def pool_vault_id(market_id: int) -> str:
    return f"pool_vault:{market_id}"


def market_authority_id(market_id: int) -> str:
    return f"market:{market_id}"


def get_outcome(market: Market, outcome_index: int) -> Outcome:
    if not isinstance(outcome_index, int) or not 0 <= outcome_index < len(market['outcomes']):
        raise ledger_error('InvalidOutcome', f"index {outcome_index!r} for {len(market['outcomes'])} outcomes")
    return market['outcomes'][outcome_index]


def total_bettors(market: Market) -> int:
    return sum(o['bettor_count'] for o in market['outcomes'])


def is_betting_closed(market: Market, now: int) -> bool:
    return now > market['betting_deadline']


def is_past_resolution_deadline(market: Market, now: int) -> bool:
    return now > market['resolution_deadline']


def has_oracle(market: Market) -> bool:
    return market['oracle'] is not None


def deserialize_market(data: Dict[str, Any]) -> Market:
    """
    Rebuild a market from its JSON form, restoring enum-typed fields.
    """
    market = dict(data)
    market['category'] = decode_category(data['category'])
    market['status'] = MarketStatus(data['status'])
    market['outcomes'] = [dict(o) for o in data['outcomes']]
    return market  # type: ignore[return-value]


def deserialize_license(data: Dict[str, Any]) -> License:
    license_ = dict(data)
    license_['license_type'] = decode_license_type(data['license_type'])
    license_['features'] = dict(data['features'])
    license_['allowed_domains'] = list(data['allowed_domains'])
    license_['allowed_wallets'] = list(data['allowed_wallets'])
    return license_  # type: ignore[return-value]
