import pytest

from fortuna.engine.markets import create_market, place_bet
from fortuna.engine.oracles import categories_to_flags, register_oracle
from fortuna.engine.protocol import initialize_protocol
from fortuna.engine.state import MarketCategory, market_authority_id, market_vault_id, pool_vault_id
from fortuna.engine.vault import InMemoryVault
from fortuna.services.summary import market_stats, oracle_stats

NOW = 1_700_000_000


@pytest.fixture
def config():
    return initialize_protocol('admin', 'treasury', 50, 50, 500)


@pytest.fixture
def market(config):
    return create_market(
        config, 1, 'creator', 'fees', 'USDC', MarketCategory.CRYPTO, 'BTC above 100k?', '',
        10000, NOW + 100, NOW + 200, ['Yes', 'No', 'Maybe'], NOW,
    )


def test_market_stats_empty(market):
    stats = market_stats(market)
    assert stats['category'] == 'Crypto'
    assert stats['status'] == 'OPEN'
    assert stats['total_bettors'] == 0
    assert stats['has_oracle'] is False
    assert [o['percentage'] for o in stats['outcomes']] == [0.0, 0.0, 0.0]
    assert [o['multiplier'] for o in stats['outcomes']] == [0.0, 0.0, 0.0]


def test_market_stats_with_bets(config, market):
    vault = InMemoryVault()
    vault.open_pool(market_vault_id(1), market_authority_id(1))
    vault.open_pool(pool_vault_id(1), market_authority_id(1))
    for who, outcome in (('a', 0), ('b', 0), ('c', 1)):
        vault.credit(who, 10000)
        place_bet(config, market, who, outcome, vault, NOW)

    stats = market_stats(market)
    assert stats['total_bettors'] == 3
    assert stats['total_pool'] == 28200
    yes, no, maybe = stats['outcomes']
    assert yes['percentage'] == pytest.approx(66.67)
    assert no['percentage'] == pytest.approx(33.33)
    assert maybe['percentage'] == 0.0
    assert yes['multiplier'] == pytest.approx(29700 / 18800, abs=1e-4)
    assert no['multiplier'] == pytest.approx(29700 / 9400, abs=1e-4)
    assert maybe['multiplier'] == 0.0


def test_oracle_stats(config):
    oracle = register_oracle(
        config, 'admin', 4, 'k', 'Feeds', categories_to_flags([MarketCategory.FINANCE, MarketCategory.TECH]),
        'src', NOW,
    )
    stats = oracle_stats(oracle)
    assert stats == {
        'oracle_id': 4,
        'name': 'Feeds',
        'markets_resolved': 0,
        'categories': ['Finance', 'Tech'],
        'is_active': True,
    }
