import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

from fortuna.db.store import LedgerStore
from fortuna.engine import licenses, markets, oracles, protocol, resolutions
from fortuna.engine.errors import LedgerError, ledger_error
from fortuna.engine.licenses import normalize_license_key
from fortuna.engine.state import (
    Bet,
    License,
    LicenseType,
    Market,
    MarketCategory,
    Oracle,
    ProtocolConfig,
    market_authority_id,
    market_vault_id,
    pool_vault_id,
)
from fortuna.engine.vault import InMemoryVault, Vault
from fortuna.utils import get_current_ts

logger = logging.getLogger(__name__)


class LedgerService:
    """
    Public operation surface of the ledger.

    Resolves records by key, stamps each call with the injected clock and runs
    it inside ``atomic()``, so a failing operation leaves both the store and a
    journaling vault exactly as they were.
    """

    def __init__(
        self,
        store: Optional[LedgerStore] = None,
        vault: Optional[Vault] = None,
        clock: Callable[[], int] = get_current_ts
    ):
        self.store = store if store is not None else LedgerStore()
        self.vault = vault if vault is not None else InMemoryVault()
        self.clock = clock

    @contextmanager
    def atomic(self) -> Iterator[None]:
        vault_journaled = hasattr(self.vault, 'begin')
        self.store.begin()
        if vault_journaled:
            self.vault.begin()  # type: ignore[attr-defined]
        try:
            yield
        except Exception as e:
            self.store.rollback()
            if vault_journaled:
                self.vault.rollback()  # type: ignore[attr-defined]
            code = e.code if isinstance(e, LedgerError) else type(e).__name__
            logger.warning("Operation rolled back: %s", code)
            raise
        else:
            self.store.commit()
            if vault_journaled:
                self.vault.commit()  # type: ignore[attr-defined]

    def _record(self, event_type: str, market_id: Optional[int] = None, **payload: Any) -> None:
        self.store.events.append({
            'type': event_type,
            'market_id': market_id,
            'payload': payload,
            'ts': self.clock(),
        })

    # Protocol
    def initialize_protocol(
        self,
        authority: str,
        treasury: str,
        protocol_fee_bps: int,
        creator_fee_bps: int,
        pool_fee_bps: int
    ) -> ProtocolConfig:
        with self.atomic():
            if self.store.protocol is not None:
                raise ledger_error('ProtocolAlreadyInitialized')
            config = protocol.initialize_protocol(
                authority, treasury, protocol_fee_bps, creator_fee_bps, pool_fee_bps,
            )
            self.store.set_protocol(config)
            self._record('PROTOCOL_INITIALIZED', authority=authority, treasury=treasury)
            return config

    def update_protocol(
        self,
        caller: str,
        treasury: Optional[str] = None,
        protocol_fee_bps: Optional[int] = None,
        creator_fee_bps: Optional[int] = None,
        pool_fee_bps: Optional[int] = None
    ) -> ProtocolConfig:
        with self.atomic():
            config = protocol.update_protocol(
                self.store.get_protocol(), caller, treasury,
                protocol_fee_bps, creator_fee_bps, pool_fee_bps,
            )
            self._record(
                'PROTOCOL_UPDATED',
                protocol_fee_bps=config['protocol_fee_bps'],
                creator_fee_bps=config['creator_fee_bps'],
                pool_fee_bps=config['pool_fee_bps'],
            )
            return config

    def set_require_license(self, caller: str, require_license: bool) -> ProtocolConfig:
        with self.atomic():
            config = protocol.set_require_license(self.store.get_protocol(), caller, require_license)
            self._record('LICENSE_REQUIREMENT_SET', require_license=config['require_license'])
            return config

    # Oracles
    def register_oracle(
        self,
        caller: str,
        oracle_id: int,
        authority: str,
        name: str,
        categories: Sequence[bool],
        data_source: str
    ) -> Oracle:
        with self.atomic():
            config = self.store.get_protocol()
            if oracle_id in self.store.oracles:
                raise ledger_error('OracleAlreadyExists', f"oracle {oracle_id}")
            oracle = oracles.register_oracle(
                config, caller, oracle_id, authority, name, categories, data_source, self.clock(),
            )
            self.store.add_oracle(oracle)
            self._record('ORACLE_REGISTERED', oracle_id=oracle_id, name=name)
            return oracle

    def update_oracle(
        self,
        caller: str,
        oracle_id: int,
        name: Optional[str] = None,
        categories: Optional[Sequence[bool]] = None,
        data_source: Optional[str] = None,
        is_active: Optional[bool] = None
    ) -> Oracle:
        with self.atomic():
            oracle = oracles.update_oracle(
                self.store.get_protocol(), caller, self.store.get_oracle(oracle_id),
                name, categories, data_source, is_active,
            )
            self._record('ORACLE_UPDATED', oracle_id=oracle_id, is_active=oracle['is_active'])
            return oracle

    # Licenses
    def issue_license(
        self,
        caller: str,
        license_key: bytes | str,
        holder: str,
        license_type: int | LicenseType,
        allowed_domains: Optional[Iterable[str]] = None,
        allowed_wallets: Optional[Iterable[str]] = None,
        max_markets: int = 0,
        is_transferable: bool = False,
        expires_at: int = 0
    ) -> License:
        with self.atomic():
            config = self.store.get_protocol()
            key = normalize_license_key(license_key)
            if key in self.store.licenses:
                raise ledger_error('LicenseAlreadyExists', key)
            license_ = licenses.issue_license(
                config, caller, key, holder, license_type, self.clock(),
                allowed_domains, allowed_wallets, max_markets, is_transferable, expires_at,
            )
            self.store.add_license(license_)
            self._record('LICENSE_ISSUED', license_key=key, holder=holder, license_type=license_['license_type'])
            return license_

    def _license(self, license_key: bytes | str) -> License:
        return self.store.get_license(normalize_license_key(license_key))

    def revoke_license(self, caller: str, license_key: bytes | str) -> License:
        with self.atomic():
            license_ = licenses.revoke_license(self.store.get_protocol(), caller, self._license(license_key))
            self._record('LICENSE_REVOKED', license_key=license_['license_key'])
            return license_

    def activate_license(self, caller: str, license_key: bytes | str) -> License:
        with self.atomic():
            license_ = licenses.activate_license(self.store.get_protocol(), caller, self._license(license_key))
            self._record('LICENSE_ACTIVATED', license_key=license_['license_key'])
            return license_

    def transfer_license(self, caller: str, license_key: bytes | str, new_holder: str) -> License:
        with self.atomic():
            self.store.get_protocol()
            license_ = licenses.transfer_license(self._license(license_key), caller, new_holder)
            self._record('LICENSE_TRANSFERRED', license_key=license_['license_key'], holder=new_holder)
            return license_

    def update_license(
        self,
        caller: str,
        license_key: bytes | str,
        max_markets: Optional[int] = None,
        expires_at: Optional[int] = None,
        features: Optional[Mapping[str, bool]] = None
    ) -> License:
        with self.atomic():
            license_ = licenses.update_license(
                self.store.get_protocol(), caller, self._license(license_key),
                max_markets, expires_at, features,
            )
            self._record('LICENSE_UPDATED', license_key=license_['license_key'])
            return license_

    def add_authorized_wallet(self, caller: str, license_key: bytes | str, wallet: str) -> License:
        with self.atomic():
            self.store.get_protocol()
            license_ = licenses.add_authorized_wallet(self._license(license_key), caller, wallet)
            self._record('LICENSE_WALLET_ADDED', license_key=license_['license_key'], wallet=wallet)
            return license_

    def remove_authorized_wallet(self, caller: str, license_key: bytes | str, wallet: str) -> License:
        with self.atomic():
            self.store.get_protocol()
            license_ = licenses.remove_authorized_wallet(self._license(license_key), caller, wallet)
            self._record('LICENSE_WALLET_REMOVED', license_key=license_['license_key'], wallet=wallet)
            return license_

    def add_authorized_domain(self, caller: str, license_key: bytes | str, domain: str) -> License:
        with self.atomic():
            self.store.get_protocol()
            license_ = licenses.add_authorized_domain(self._license(license_key), caller, domain)
            self._record('LICENSE_DOMAIN_ADDED', license_key=license_['license_key'], domain=domain)
            return license_

    def remove_authorized_domain(self, caller: str, license_key: bytes | str, domain: str) -> License:
        with self.atomic():
            self.store.get_protocol()
            license_ = licenses.remove_authorized_domain(self._license(license_key), caller, domain)
            self._record('LICENSE_DOMAIN_REMOVED', license_key=license_['license_key'], domain=domain)
            return license_

    # Markets
    def create_market(
        self,
        creator: str,
        market_id: int,
        creator_fee_wallet: str,
        token_mint: str,
        category: int | MarketCategory,
        title: str,
        description: str,
        bet_amount: int,
        betting_deadline: int,
        resolution_deadline: int,
        outcomes: List[str],
        oracle_event_id: str = '',
        license_key: Optional[bytes | str] = None,
        domain: Optional[str] = None
    ) -> Market:
        with self.atomic():
            config = self.store.get_protocol()
            if market_id in self.store.markets:
                raise ledger_error('MarketAlreadyExists', f"market {market_id}")
            license_ = None
            if license_key is not None:
                license_ = self.store.find_license(normalize_license_key(license_key))

            market = markets.create_market(
                config, market_id, creator, creator_fee_wallet, token_mint, category,
                title, description, bet_amount, betting_deadline, resolution_deadline,
                outcomes, self.clock(), oracle_event_id, license_, domain,
            )
            if hasattr(self.vault, 'open_pool'):
                authority = market_authority_id(market_id)
                self.vault.open_pool(market_vault_id(market_id), authority)  # type: ignore[attr-defined]
                self.vault.open_pool(pool_vault_id(market_id), authority)  # type: ignore[attr-defined]
            self.store.add_market(market)
            self._record('MARKET_CREATED', market_id, creator=creator, title=title, bet_amount=bet_amount)
            return market

    def assign_oracle(self, caller: str, market_id: int, oracle_id: int) -> Market:
        with self.atomic():
            market = self.store.get_market(market_id)
            license_ = self.store.find_license(market['license_key']) if market['license_key'] else None
            market = markets.assign_oracle(
                self.store.get_protocol(), market, caller, self.store.get_oracle(oracle_id), license_,
            )
            self._record('ORACLE_ASSIGNED', market_id, oracle_id=oracle_id)
            return market

    def place_bet(self, bettor: str, market_id: int, outcome_index: int) -> Bet:
        with self.atomic():
            config = self.store.get_protocol()
            market = self.store.get_market(market_id)
            bet = markets.place_bet(
                config, market, bettor, outcome_index, self.vault, self.clock(),
                existing_bet=self.store.find_bet(market_id, bettor),
            )
            self.store.add_bet(bet)
            self._record('BET_PLACED', market_id, bettor=bettor, outcome_index=outcome_index,
                         amount=bet['original_amount'])
            return bet

    def withdraw_bet(self, bettor: str, market_id: int) -> int:
        with self.atomic():
            amount = markets.withdraw_bet(
                self.store.get_market(market_id), self.store.get_bet(market_id, bettor),
                bettor, self.vault, self.clock(),
            )
            self._record('BET_WITHDRAWN', market_id, bettor=bettor, amount=amount)
            return amount

    def cancel_market(self, caller: str, market_id: int) -> Market:
        with self.atomic():
            market = markets.cancel_market(self.store.get_protocol(), self.store.get_market(market_id), caller)
            self._record('MARKET_CANCELLED', market_id, caller=caller)
            return market

    def claim_refund(self, bettor: str, market_id: int) -> int:
        with self.atomic():
            amount = markets.claim_refund(
                self.store.get_market(market_id), self.store.get_bet(market_id, bettor), bettor, self.vault,
            )
            self._record('REFUND_CLAIMED', market_id, bettor=bettor, amount=amount)
            return amount

    # Resolution
    def resolve_market(self, caller: str, market_id: int, winning_outcome: int) -> Market:
        with self.atomic():
            market = resolutions.resolve_market(
                self.store.get_market(market_id), caller, winning_outcome, self.vault, self.clock(),
            )
            self._record('MARKET_RESOLVED', market_id, winning_outcome=winning_outcome, by_oracle=False)
            return market

    def oracle_resolve_market(self, caller: str, market_id: int, oracle_id: int, winning_outcome: int) -> Market:
        with self.atomic():
            market = resolutions.oracle_resolve_market(
                self.store.get_market(market_id), self.store.get_oracle(oracle_id),
                caller, winning_outcome, self.vault, self.clock(),
            )
            self._record('MARKET_RESOLVED', market_id, winning_outcome=winning_outcome, by_oracle=True,
                         oracle_id=oracle_id)
            return market

    def claim_winnings(self, bettor: str, market_id: int) -> int:
        with self.atomic():
            payout = resolutions.claim_winnings(
                self.store.get_market(market_id), self.store.get_bet(market_id, bettor), bettor, self.vault,
            )
            self._record('WINNINGS_CLAIMED', market_id, bettor=bettor, payout=payout)
            return payout

    # Read-only
    def get_payout(self, bettor: str, market_id: int) -> int:
        return resolutions.calculate_payout(self.store.get_market(market_id), self.store.get_bet(market_id, bettor))

    def get_potential_winnings(self, market_id: int, outcome_index: int) -> int:
        return resolutions.calculate_potential_winnings(
            self.store.get_market(market_id), outcome_index, self.store.get_protocol(),
        )

    def events_for_market(self, market_id: int) -> List[Dict[str, Any]]:
        return [e for e in self.store.events if e['market_id'] == market_id]
