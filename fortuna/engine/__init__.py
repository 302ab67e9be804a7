"""
Deterministic core of the Fortuna ledger.

Every function here operates on plain record dicts and an explicit ``now``;
none reads a clock or touches storage. Checks run before any mutation, so a
raised LedgerError leaves the records as they were.
"""
from .errors import (
    AuthorizationError,
    EntitlementError,
    ErrorKind,
    LedgerError,
    ResourceError,
    StateError,
    TemporalError,
    ValidationError,
    ledger_error,
)
from .state import (
    Bet,
    License,
    LicenseFeatures,
    LicenseType,
    Market,
    MarketCategory,
    MarketStatus,
    Oracle,
    Outcome,
    ProtocolConfig,
)
from .fees import compute_fees, fee_breakdown
from .vault import InMemoryVault, Vault
from .protocol import initialize_protocol, set_require_license, update_protocol
from .licenses import (
    activate_license,
    add_authorized_domain,
    add_authorized_wallet,
    generate_license_key,
    issue_license,
    remove_authorized_domain,
    remove_authorized_wallet,
    revoke_license,
    transfer_license,
    update_license,
)
from .oracles import register_oracle, update_oracle
from .markets import assign_oracle, cancel_market, claim_refund, create_market, place_bet, withdraw_bet
from .resolutions import calculate_payout, claim_winnings, oracle_resolve_market, resolve_market
