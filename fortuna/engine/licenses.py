"""
License issuance and entitlement checks.

A license bounds who may create markets, how many, and with which features.
Licenses are never deleted: revocation flips ``is_active`` and expiry is
implicit once ``expires_at`` has passed.
"""
import hashlib
import logging
from typing import Iterable, List, Mapping, Optional

from .errors import ledger_error
from .ledger_math import checked_add
from .params import (
    LICENSE_KEY_LEN,
    MAX_DOMAIN_LEN,
    MAX_LICENSE_DOMAINS,
    MAX_LICENSE_WALLETS,
    U32_MAX,
)
from .protocol import require_authority
from .state import (
    LICENSE_TYPE_MAX_MARKETS,
    License,
    LicenseFeatures,
    LicenseType,
    ProtocolConfig,
    decode_license_type,
    features_for_license_type,
)
from fortuna.utils import byte_len

logger = logging.getLogger(__name__)


def generate_license_key(seed: str) -> bytes:
    """Derive a 32-byte license key from an arbitrary seed string."""
    return hashlib.sha256(seed.encode('utf-8')).digest()


def normalize_license_key(license_key: bytes | str) -> str:
    """
    Return the canonical hex form of a 32-byte key given as bytes or hex.
    """
    if isinstance(license_key, str):
        try:
            raw = bytes.fromhex(license_key)
        except ValueError:
            raise ledger_error('InvalidLicenseKey', "not a hex string") from None
    else:
        raw = bytes(license_key)
    if len(raw) != LICENSE_KEY_LEN:
        raise ledger_error('InvalidLicenseKey', f"got {len(raw)} bytes")
    return raw.hex()


def _validate_domain(domain: str) -> None:
    if byte_len(domain) > MAX_DOMAIN_LEN:
        raise ledger_error('DomainTooLong', domain)


def issue_license(
    config: ProtocolConfig,
    caller: str,
    license_key: bytes | str,
    holder: str,
    license_type: int | LicenseType,
    now: int,
    allowed_domains: Optional[Iterable[str]] = None,
    allowed_wallets: Optional[Iterable[str]] = None,
    max_markets: int = 0,
    is_transferable: bool = False,
    expires_at: int = 0
) -> License:
    """
    Issue a license and bump the protocol's license counter.

    ``max_markets == 0`` means the ceiling of the license type. Features are
    derived from the type and can be overridden later with ``update_license``.
    """
    require_authority(config, caller)
    key = normalize_license_key(license_key)
    lt = decode_license_type(license_type)

    domains: List[str] = list(allowed_domains or [])
    if len(domains) > MAX_LICENSE_DOMAINS:
        raise ledger_error('TooManyDomains', f"{len(domains)} > {MAX_LICENSE_DOMAINS}")
    for domain in domains:
        _validate_domain(domain)

    wallets: List[str] = list(allowed_wallets or [])
    if len(wallets) > MAX_LICENSE_WALLETS:
        raise ledger_error('TooManyWallets', f"{len(wallets)} > {MAX_LICENSE_WALLETS}")

    if max_markets < 0 or max_markets > U32_MAX:
        raise ledger_error('InvalidMarketLimit', f"max_markets={max_markets}")

    total_licenses = checked_add(config['total_licenses'], 1, U32_MAX)

    license_: License = {
        'license_key': key,
        'holder': holder,
        'license_type': lt,
        'features': features_for_license_type(lt),
        'allowed_domains': domains,
        'allowed_wallets': wallets,
        'max_markets': max_markets if max_markets else LICENSE_TYPE_MAX_MARKETS[lt],
        'markets_created': 0,
        'is_active': True,
        'is_transferable': bool(is_transferable),
        'issued_at': now,
        'expires_at': expires_at,
        'last_used_at': 0,
        'issued_by': caller,
    }
    config['total_licenses'] = total_licenses

    logger.info("License issued: %s license to %s", lt.label, holder)
    return license_


def revoke_license(config: ProtocolConfig, caller: str, license_: License) -> License:
    require_authority(config, caller)
    license_['is_active'] = False
    logger.info("License revoked for holder: %s", license_['holder'])
    return license_


def activate_license(config: ProtocolConfig, caller: str, license_: License) -> License:
    require_authority(config, caller)
    license_['is_active'] = True
    logger.info("License activated for holder: %s", license_['holder'])
    return license_


def transfer_license(license_: License, caller: str, new_holder: str) -> License:
    """
    Hand the license to ``new_holder``. Delegated wallets are cleared; the
    domain list is kept.
    """
    if caller != license_['holder']:
        raise ledger_error('Unauthorized', f"{caller} does not hold this license")
    if not license_['is_transferable']:
        raise ledger_error('LicenseNotTransferable')

    old_holder = license_['holder']
    license_['holder'] = new_holder
    license_['allowed_wallets'] = []
    logger.info("License transferred from %s to %s", old_holder, new_holder)
    return license_


def update_license(
    config: ProtocolConfig,
    caller: str,
    license_: License,
    max_markets: Optional[int] = None,
    expires_at: Optional[int] = None,
    features: Optional[Mapping[str, bool]] = None
) -> License:
    """
    Partial update: any of ``max_markets``, ``expires_at`` and individual
    feature flags. Absent arguments leave the field unchanged.
    """
    require_authority(config, caller)

    if max_markets is not None:
        if max_markets < license_['markets_created'] or max_markets > U32_MAX:
            raise ledger_error(
                'InvalidMarketLimit',
                f"max_markets={max_markets}, markets_created={license_['markets_created']}",
            )

    new_features: Optional[LicenseFeatures] = None
    if features is not None:
        unknown = set(features) - set(LicenseFeatures.__annotations__)
        if unknown:
            raise ledger_error('UnknownFeature', ', '.join(sorted(unknown)))
        new_features = {**license_['features'], **{k: bool(v) for k, v in features.items()}}  # type: ignore[typeddict-item]

    if max_markets is not None:
        license_['max_markets'] = max_markets
        logger.info("License max markets updated to: %d", max_markets)
    if expires_at is not None:
        license_['expires_at'] = expires_at
        logger.info("License expiration updated to: %d", expires_at)
    if new_features is not None:
        license_['features'] = new_features
        logger.info("License features updated")
    return license_


def _require_holder(license_: License, caller: str) -> None:
    if caller != license_['holder']:
        raise ledger_error('Unauthorized', f"{caller} does not hold this license")


def add_authorized_wallet(license_: License, caller: str, wallet: str) -> License:
    _require_holder(license_, caller)
    if len(license_['allowed_wallets']) >= MAX_LICENSE_WALLETS:
        raise ledger_error('TooManyWallets')
    if wallet not in license_['allowed_wallets']:
        license_['allowed_wallets'].append(wallet)
        logger.info("Wallet %s added to license", wallet)
    return license_


def remove_authorized_wallet(license_: License, caller: str, wallet: str) -> License:
    _require_holder(license_, caller)
    license_['allowed_wallets'] = [w for w in license_['allowed_wallets'] if w != wallet]
    logger.info("Wallet %s removed from license", wallet)
    return license_


def add_authorized_domain(license_: License, caller: str, domain: str) -> License:
    _require_holder(license_, caller)
    if len(license_['allowed_domains']) >= MAX_LICENSE_DOMAINS:
        raise ledger_error('TooManyDomains')
    _validate_domain(domain)
    if domain not in license_['allowed_domains']:
        license_['allowed_domains'].append(domain)
        logger.info("Domain %s added to license", domain)
    return license_


def remove_authorized_domain(license_: License, caller: str, domain: str) -> License:
    _require_holder(license_, caller)
    license_['allowed_domains'] = [d for d in license_['allowed_domains'] if d != domain]
    logger.info("Domain %s removed from license", domain)
    return license_


def is_valid(license_: License, now: int) -> bool:
    if not license_['is_active']:
        return False
    return license_['expires_at'] == 0 or now <= license_['expires_at']


def can_create_market(license_: License) -> bool:
    return license_['features']['can_create_markets'] and license_['markets_created'] < license_['max_markets']


def is_wallet_authorized(license_: License, wallet: str) -> bool:
    # Holder is always authorized
    if license_['holder'] == wallet:
        return True
    return wallet in license_['allowed_wallets']


def is_domain_allowed(license_: License, domain: str) -> bool:
    """An empty domain list places no restriction."""
    if not license_['allowed_domains']:
        return True
    return domain in license_['allowed_domains']


def check_market_creation(
    license_: Optional[License],
    creator: str,
    now: int,
    domain: Optional[str] = None
) -> License:
    """
    Gate market creation under a required license. Raises the first failing
    entitlement; returns the license so the caller can debit it.
    """
    if license_ is None:
        raise ledger_error('LicenseRequired')
    if not license_['is_active']:
        raise ledger_error('LicenseNotActive')
    if not is_valid(license_, now):
        raise ledger_error('LicenseExpired', f"expired at {license_['expires_at']}")
    if not is_wallet_authorized(license_, creator):
        raise ledger_error('WalletNotAuthorized', creator)
    if domain is not None and not is_domain_allowed(license_, domain):
        raise ledger_error('DomainNotAuthorized', domain)
    if not license_['features']['can_create_markets']:
        raise ledger_error('FeatureNotEnabled', 'can_create_markets')
    if not can_create_market(license_):
        raise ledger_error(
            'LicenseMarketLimitReached',
            f"{license_['markets_created']}/{license_['max_markets']}",
        )
    return license_


def record_market_created(license_: License, now: int) -> None:
    license_['markets_created'] = checked_add(license_['markets_created'], 1, license_['max_markets'])
    license_['last_used_at'] = now
