"""
Typed failures raised by the ledger engine.

Every failure carries a stable ``code`` (the name used in logs, events and the
persisted event table) and a ``kind`` grouping it by cause. All of them derive
from ``ValueError`` so code that treats engine rejections as bad input keeps
working.
"""
from enum import Enum
from typing import Dict, Tuple, Type


class ErrorKind(str, Enum):
    VALIDATION = 'VALIDATION'
    STATE = 'STATE'
    AUTHORIZATION = 'AUTHORIZATION'
    TEMPORAL = 'TEMPORAL'
    RESOURCE = 'RESOURCE'
    ENTITLEMENT = 'ENTITLEMENT'


class LedgerError(ValueError):
    """Base exception for all ledger rejections."""
    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, code: str, message: str, detail: str | None = None):
        self.code = code
        self.message = message
        self.detail = detail
        text = f"{message}: {detail}" if detail else message
        super().__init__(text)


class ValidationError(LedgerError):
    """Out-of-range length or count, or an invalid numeric/enum input."""
    kind = ErrorKind.VALIDATION


class StateError(LedgerError):
    """Record is in the wrong lifecycle state for the operation."""
    kind = ErrorKind.STATE


class AuthorizationError(LedgerError):
    """Caller is not the identity the operation requires."""
    kind = ErrorKind.AUTHORIZATION


class TemporalError(LedgerError):
    """Operation attempted on the wrong side of a deadline."""
    kind = ErrorKind.TEMPORAL


class ResourceError(LedgerError):
    """Arithmetic overflow/underflow or insufficient funds at the transfer layer."""
    kind = ErrorKind.RESOURCE


class EntitlementError(LedgerError):
    """License missing, exhausted, or lacking a feature; or nothing to claim."""
    kind = ErrorKind.ENTITLEMENT


_CATALOG: Dict[str, Tuple[Type[LedgerError], str]] = {
    # Validation
    'TitleTooLong': (ValidationError, "Title too long"),
    'DescriptionTooLong': (ValidationError, "Description too long"),
    'TooManyOutcomes': (ValidationError, "Too many outcomes"),
    'TooFewOutcomes': (ValidationError, "Need at least 2 outcomes"),
    'OutcomeLabelTooLong': (ValidationError, "Outcome label too long"),
    'InvalidBetAmount': (ValidationError, "Invalid bet amount"),
    'InvalidDeadline': (ValidationError, "Invalid deadline configuration"),
    'InvalidFeeConfig': (ValidationError, "Invalid fee configuration"),
    'InvalidCategory': (ValidationError, "Invalid category"),
    'InvalidOutcome': (ValidationError, "Invalid outcome index"),
    'OracleNameTooLong': (ValidationError, "Oracle name too long"),
    'DataSourceTooLong': (ValidationError, "Data source URL too long"),
    'OracleEventIdTooLong': (ValidationError, "Oracle event ID too long"),
    'InvalidLicenseType': (ValidationError, "Invalid license type"),
    'InvalidLicenseKey': (ValidationError, "License key must be exactly 32 bytes"),
    'TooManyDomains': (ValidationError, "Too many domains specified"),
    'DomainTooLong': (ValidationError, "Domain name too long"),
    'TooManyWallets': (ValidationError, "Too many wallets specified"),
    'InvalidMarketLimit': (ValidationError, "Market limit below markets already created"),
    'UnknownFeature': (ValidationError, "Unknown license feature"),
    # State
    'MarketNotOpen': (StateError, "Market is not open for betting"),
    'MarketNotResolved': (StateError, "Market has not been resolved yet"),
    'MarketNotCancelled': (StateError, "Market has not been cancelled"),
    'MarketHasBets': (StateError, "Market has active bets and cannot be cancelled"),
    'MarketAlreadyHasOracle': (StateError, "Market already has an oracle assigned"),
    'MarketHasNoOracle': (StateError, "Market does not have an assigned oracle"),
    'BetAlreadyPlaced': (StateError, "Bet already placed for this market"),
    'AlreadyClaimed': (StateError, "Winnings already claimed"),
    'BetAlreadyWithdrawn': (StateError, "Bet already withdrawn or claimed"),
    'OracleNotActive': (StateError, "Oracle is not active"),
    'LicenseNotActive': (StateError, "License is not active"),
    'LicenseAlreadyExists': (StateError, "License already exists for this key"),
    'MarketAlreadyExists': (StateError, "Market already exists for this id"),
    'OracleAlreadyExists': (StateError, "Oracle already exists for this id"),
    'ProtocolAlreadyInitialized': (StateError, "Protocol is already initialized"),
    'ProtocolNotInitialized': (StateError, "Protocol has not been initialized"),
    'RecordNotFound': (StateError, "Record not found"),
    # Authorization
    'Unauthorized': (AuthorizationError, "Unauthorized action"),
    'WalletNotAuthorized': (AuthorizationError, "Wallet not authorized under this license"),
    'DomainNotAuthorized': (AuthorizationError, "Domain not authorized under this license"),
    'OracleNotAuthorizedForCategory': (AuthorizationError, "Oracle not authorized for this category"),
    'OracleMismatch': (AuthorizationError, "Oracle mismatch - wrong oracle for this market"),
    'LicenseNotTransferable': (AuthorizationError, "License is not transferable"),
    # Temporal
    'BettingDeadlinePassed': (TemporalError, "Betting deadline has passed"),
    'WithdrawDeadlinePassed': (TemporalError, "Cannot withdraw after betting deadline"),
    'CannotResolveBeforeBettingDeadline': (TemporalError, "Market cannot be resolved before betting deadline"),
    'LicenseExpired': (TemporalError, "License has expired"),
    # Resource
    'Overflow': (ResourceError, "Arithmetic overflow"),
    'InsufficientFunds': (ResourceError, "Insufficient funds"),
    # Entitlement
    'LicenseRequired': (EntitlementError, "Valid license required to perform this action"),
    'LicenseMarketLimitReached': (EntitlementError, "License market limit reached"),
    'FeatureNotEnabled': (EntitlementError, "Feature not enabled for this license"),
    'LostBet': (EntitlementError, "Lost bet - no winnings to claim"),
}


def ledger_error(code: str, detail: str | None = None) -> LedgerError:
    """
    Build the typed error for ``code``. Raise the result at the call site.
    """
    try:
        error_cls, message = _CATALOG[code]
    except KeyError:
        raise KeyError(f"Unknown ledger error code: {code}") from None
    return error_cls(code, message, detail)


def error_codes() -> Dict[str, ErrorKind]:
    return {code: cls.kind for code, (cls, _) in _CATALOG.items()}
