import copy
import logging
from unittest.mock import patch

import pytest

from fortuna.engine.errors import (
    AuthorizationError,
    EntitlementError,
    LedgerError,
    ResourceError,
    StateError,
)
from fortuna.engine.licenses import generate_license_key
from fortuna.engine.oracles import categories_to_flags
from fortuna.engine.state import MarketCategory, MarketStatus, market_vault_id, pool_vault_id
from fortuna.engine.vault import InMemoryVault
from fortuna.services.ledger import LedgerService

NOW = 1_700_000_000
DEADLINE = NOW + 3600


class FakeClock:
    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture
def vault() -> InMemoryVault:
    v = InMemoryVault()
    for who in ('alice', 'bob', 'carol'):
        v.credit(who, 50000)
    return v


@pytest.fixture
def service(vault, clock) -> LedgerService:
    svc = LedgerService(vault=vault, clock=clock)
    svc.initialize_protocol('admin', 'treasury', 50, 50, 500)
    return svc


def open_market(service: LedgerService, market_id: int = 1, **kwargs):
    params = dict(
        creator='creator',
        market_id=market_id,
        creator_fee_wallet='creator_fees',
        token_mint='USDC',
        category=MarketCategory.SPORTS,
        title='Final',
        description='',
        bet_amount=10000,
        betting_deadline=DEADLINE,
        resolution_deadline=DEADLINE + 3600,
        outcomes=['A', 'B'],
    )
    params.update(kwargs)
    return service.create_market(**params)


def test_operations_need_initialized_protocol():
    svc = LedgerService(clock=lambda: NOW)
    with pytest.raises(StateError, match="not been initialized"):
        open_market(svc)


def test_initialize_once(service):
    with pytest.raises(StateError, match="already initialized"):
        service.initialize_protocol('mallory', 'x', 0, 0, 0)
    assert service.store.get_protocol()['authority'] == 'admin'


def test_full_lifecycle(service, vault, clock):
    open_market(service)
    assert vault.pool_authorities[market_vault_id(1)] == 'market:1'

    service.place_bet('alice', 1, 0)
    service.place_bet('bob', 1, 0)
    service.place_bet('carol', 1, 1)
    # outcome B doubled: 9400 * (28200 + 1500 + 9400) // 18800
    assert service.get_potential_winnings(1, 1) == 19550

    clock.now = DEADLINE + 1
    service.resolve_market('creator', 1, 0)

    assert service.get_payout('alice', 1) == 14850
    assert service.claim_winnings('alice', 1) == 14850
    assert service.claim_winnings('bob', 1) == 14850
    with pytest.raises(EntitlementError):
        service.claim_winnings('carol', 1)

    config = service.store.get_protocol()
    assert config['total_markets'] == 1
    assert config['total_volume'] == 30000
    assert vault.balance_of('treasury') == 150
    assert vault.balance_of('creator_fees') == 150

    types = [e['type'] for e in service.events_for_market(1)]
    assert types == ['MARKET_CREATED', 'BET_PLACED', 'BET_PLACED', 'BET_PLACED',
                     'MARKET_RESOLVED', 'WINNINGS_CLAIMED', 'WINNINGS_CLAIMED']


def test_second_bet_rejected(service):
    open_market(service)
    service.place_bet('alice', 1, 0)
    with pytest.raises(StateError, match="Bet already placed"):
        service.place_bet('alice', 1, 1)
    assert service.store.get_market(1)['total_pool'] == 9400


def test_duplicate_market_rejected(service):
    open_market(service)
    with pytest.raises(StateError, match="Market already exists"):
        open_market(service, title='Other')
    assert service.store.get_market(1)['title'] == 'Final'
    assert service.store.get_protocol()['total_markets'] == 1


def test_failed_bet_rolls_back(service, vault, caplog):
    open_market(service)
    events_before = len(service.store.events)
    with caplog.at_level(logging.WARNING, logger='fortuna.services.ledger'):
        with pytest.raises(ResourceError, match="Insufficient funds"):
            service.place_bet('dave', 1, 0)
    assert "InsufficientFunds" in caplog.text

    market = service.store.get_market(1)
    assert market['total_pool'] == 0
    assert market['bonus_pool'] == 0
    assert service.store.find_bet(1, 'dave') is None
    assert len(service.store.events) == events_before
    assert vault.balance_of(market_vault_id(1)) == 0
    assert vault.balance_of('treasury') == 0


def test_atomic_restores_store_and_vault(service, vault):
    open_market(service)
    with pytest.raises(RuntimeError):
        with service.atomic():
            service.store.get_market(1)['total_pool'] = 123
            vault.deposit('alice', pool_vault_id(1), 10)
            raise RuntimeError("boom")
    assert service.store.get_market(1)['total_pool'] == 0
    assert vault.balance_of('alice') == 50000


def test_cancel_and_refund(service, vault):
    open_market(service)
    service.place_bet('alice', 1, 0)
    with pytest.raises(StateError, match="active bets"):
        service.cancel_market('creator', 1)
    service.cancel_market('admin', 1)
    assert service.store.get_market(1)['status'] == MarketStatus.CANCELLED
    assert service.claim_refund('alice', 1) == 9400
    assert vault.balance_of('alice') == 50000 - 600
    with pytest.raises(StateError):
        service.claim_refund('alice', 1)


def test_withdraw_then_bet_again_is_rejected(service):
    open_market(service)
    service.place_bet('alice', 1, 0)
    assert service.withdraw_bet('alice', 1) == 9400
    with pytest.raises(StateError, match="Bet already placed"):
        service.place_bet('alice', 1, 0)


def test_missing_bet(service):
    open_market(service)
    with pytest.raises(StateError, match="Record not found"):
        service.claim_refund('nobody', 1)


def test_oracle_flow(service, clock):
    service.register_oracle('admin', 9, 'oracle_key', 'Scores', categories_to_flags([MarketCategory.SPORTS]), 'src')
    with pytest.raises(StateError, match="Oracle already exists"):
        service.register_oracle('admin', 9, 'k', 'n', categories_to_flags([0]), 'src')
    assert service.store.get_protocol()['total_oracles'] == 1

    open_market(service)
    service.assign_oracle('creator', 1, 9)
    service.place_bet('alice', 1, 1)

    clock.now = DEADLINE + 1
    with pytest.raises(AuthorizationError):
        service.oracle_resolve_market('creator', 1, 9, 1)
    service.oracle_resolve_market('oracle_key', 1, 9, 1)
    assert service.store.get_oracle(9)['markets_resolved'] == 1
    assert service.store.get_market(1)['resolved_by_oracle'] is True
    assert service.claim_winnings('alice', 1) == 9900

    service.update_oracle('admin', 9, is_active=False)
    assert service.store.get_oracle(9)['is_active'] is False


def test_license_quota_through_service(service):
    key = generate_license_key('creator-license')
    service.set_require_license('admin', True)
    service.issue_license('admin', key, 'creator', 0, max_markets=2, allowed_domains=['fortuna.io'])
    with pytest.raises(StateError, match="License already exists"):
        service.issue_license('admin', key.hex(), 'other', 1)

    open_market(service, 1, license_key=key, domain='fortuna.io')
    with pytest.raises(AuthorizationError, match="Domain not authorized"):
        open_market(service, 2, license_key=key, domain='evil.io')
    open_market(service, 2, license_key=key.hex())
    with pytest.raises(EntitlementError, match="License market limit reached"):
        open_market(service, 3, license_key=key)

    lic = service.store.get_license(key.hex())
    assert lic['markets_created'] == 2
    assert service.store.get_protocol()['total_markets'] == 2

    service.update_license('admin', key, max_markets=3)
    open_market(service, 3, license_key=key)
    assert lic['markets_created'] == 3


def test_license_management(service):
    key = generate_license_key('mgmt')
    service.issue_license('admin', key, 'holder', 1, is_transferable=True)
    service.add_authorized_wallet('holder', key, 'delegate')
    service.add_authorized_domain('holder', key, 'a.io')
    service.remove_authorized_domain('holder', key, 'a.io')
    lic = service.store.get_license(key.hex())
    assert lic['allowed_wallets'] == ['delegate']
    assert lic['allowed_domains'] == []

    service.remove_authorized_wallet('holder', key, 'delegate')
    service.revoke_license('admin', key)
    assert lic['is_active'] is False
    service.activate_license('admin', key)
    service.transfer_license('holder', key, 'new_holder')
    assert lic['holder'] == 'new_holder'
    with pytest.raises(AuthorizationError):
        service.revoke_license('new_holder', key)


def test_license_required_without_key(service):
    service.set_require_license('admin', True)
    with pytest.raises(EntitlementError, match="Valid license required"):
        open_market(service)
    assert service.store.markets == {}


def test_update_protocol_changes_future_fees(service, vault):
    service.update_protocol('admin', pool_fee_bps=0, creator_fee_bps=0, protocol_fee_bps=0)
    open_market(service)
    bet = service.place_bet('alice', 1, 0)
    assert bet['pool_amount'] == 10000
    with pytest.raises(LedgerError, match="Invalid fee configuration"):
        service.update_protocol('admin', pool_fee_bps=1001)


def deepcopy_calls_for_bet(other_markets: int) -> int:
    vault = InMemoryVault()
    vault.credit('alice', 50000)
    svc = LedgerService(vault=vault, clock=lambda: NOW)
    svc.initialize_protocol('admin', 'treasury', 50, 50, 500)
    for market_id in range(2, other_markets + 2):
        open_market(svc, market_id)
        for n in range(3):
            bettor = f'bettor{market_id}-{n}'
            vault.credit(bettor, 10000)
            svc.place_bet(bettor, market_id, n % 2)
    open_market(svc, 1)
    with patch.object(copy, 'deepcopy', wraps=copy.deepcopy) as spy:
        svc.place_bet('alice', 1, 0)
    return spy.call_count


def test_rollback_journal_does_not_grow_with_ledger():
    small = deepcopy_calls_for_bet(0)
    assert small > 0
    assert deepcopy_calls_for_bet(40) == small


def test_rollback_leaves_untouched_markets_alone(service, vault):
    open_market(service, 1)
    open_market(service, 2)
    service.place_bet('bob', 2, 0)
    other = service.store.get_market(2)
    with pytest.raises(ResourceError):
        service.place_bet('dave', 1, 0)
    assert service.store.get_market(2) is other
    assert other['total_pool'] == 9400
    assert vault.balance_of(market_vault_id(2)) == 9400
    assert vault.balance_of('bob') == 40000
