import pytest

from fortuna.engine.errors import AuthorizationError, ResourceError
from fortuna.engine.vault import InMemoryVault, Vault, split_stake


@pytest.fixture
def vault() -> InMemoryVault:
    v = InMemoryVault()
    v.credit('alice', 1000)
    v.open_pool('pool', 'market:1')
    return v


def test_in_memory_vault_is_a_vault(vault):
    assert isinstance(vault, Vault)


def test_deposit_and_withdraw(vault):
    vault.deposit('alice', 'pool', 600)
    assert vault.balance_of('alice') == 400
    assert vault.balance_of('pool') == 600
    vault.withdraw('pool', 'bob', 250, 'market:1')
    assert vault.balance_of('pool') == 350
    assert vault.balance_of('bob') == 250


def test_insufficient_funds_changes_nothing(vault):
    with pytest.raises(ResourceError, match="Insufficient funds"):
        vault.deposit('alice', 'pool', 1001)
    assert vault.balance_of('alice') == 1000
    assert vault.balance_of('pool') == 0


def test_withdraw_needs_pool_authority(vault):
    vault.deposit('alice', 'pool', 100)
    with pytest.raises(AuthorizationError):
        vault.withdraw('pool', 'mallory', 100, 'market:2')
    # plain accounts have no authority at all
    with pytest.raises(AuthorizationError):
        vault.withdraw('alice', 'mallory', 1, 'alice')


def test_batch_is_all_or_nothing(vault):
    with pytest.raises(ResourceError):
        vault.deposit_batch('alice', [('pool', 900), ('treasury', 200)])
    assert vault.balance_of('alice') == 1000
    assert vault.balance_of('pool') == 0
    assert vault.balance_of('treasury') == 0

    vault.deposit_batch('alice', [('pool', 900), ('treasury', 100)])
    assert vault.balance_of('alice') == 0
    assert vault.balance_of('treasury') == 100


def test_split_stake_skips_zero_legs(vault):
    calls = []

    class RecordingVault(InMemoryVault):
        def deposit_batch(self, source, legs):
            calls.append(legs)
            super().deposit_batch(source, legs)

    recorder = RecordingVault()
    recorder.credit('alice', 10)
    split_stake('alice', recorder, [('a', 10), ('b', 0)])
    split_stake('alice', recorder, [('a', 0)])
    assert calls == [[('a', 10)]]


def test_rollback_restores_touched_accounts(vault):
    vault.credit('bystander', 7)
    vault.begin()
    vault.deposit('alice', 'pool', 500)
    vault.credit('newcomer', 5)
    vault.open_pool('other', 'market:2')
    vault.rollback()
    assert vault.balance_of('alice') == 1000
    assert vault.balance_of('pool') == 0
    assert 'newcomer' not in vault.balances
    assert 'other' not in vault.pool_authorities
    assert vault.balance_of('bystander') == 7


def test_commit_keeps_changes(vault):
    vault.begin()
    vault.deposit('alice', 'pool', 500)
    vault.commit()
    vault.rollback()
    assert vault.balance_of('alice') == 500
    assert vault.balance_of('pool') == 500
