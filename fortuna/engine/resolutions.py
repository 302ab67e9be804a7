import logging

from .errors import ledger_error
from .fees import fee_breakdown
from .ledger_math import checked_add, mul_div_floor
from .markets import require_open
from .oracles import can_resolve_category
from .params import U64_MAX
from .state import (
    Bet,
    Market,
    MarketStatus,
    Oracle,
    ProtocolConfig,
    get_outcome,
    is_betting_closed,
    market_authority_id,
    market_vault_id,
    pool_vault_id,
)
from .vault import Vault

logger = logging.getLogger(__name__)


def calculate_payout(market: Market, bet: Bet) -> int:
    """
    Pari-mutuel share of a winning bet.

    payout = floor(pool_amount * (total_pool + bonus_pool) / winning_total)

    Losing bets, unresolved markets and a winning outcome nobody staked on
    all pay 0. Truncation dust stays in the vault.
    """
    if market['status'] != MarketStatus.RESOLVED or market['winning_outcome'] is None:
        return 0
    if bet['outcome_index'] != market['winning_outcome']:
        return 0

    winning_total = market['outcomes'][market['winning_outcome']]['total_amount']
    if winning_total == 0:
        return 0

    total_distributable = market['total_pool'] + market['bonus_pool']
    return mul_div_floor(bet['pool_amount'], total_distributable, winning_total)


def calculate_potential_winnings(market: Market, outcome_index: int, config: ProtocolConfig) -> int:
    """
    What a new bet on ``outcome_index`` would pay if that outcome won, at the
    current pools and fee rates. The new bet's own pool fee is not counted.
    """
    outcome = get_outcome(market, outcome_index)
    fees = fee_breakdown(market['bet_amount'], config)
    net_amount = fees['net_amount']

    new_outcome_total = outcome['total_amount'] + net_amount
    total_distributable = market['total_pool'] + market['bonus_pool'] + net_amount
    if new_outcome_total == 0:
        return total_distributable
    return mul_div_floor(net_amount, total_distributable, new_outcome_total)


def _check_resolution(market: Market, winning_outcome: int, now: int) -> None:
    get_outcome(market, winning_outcome)
    if not is_betting_closed(market, now):
        raise ledger_error('CannotResolveBeforeBettingDeadline')


def _consolidate_bonus_pool(market: Market, vault: Vault) -> None:
    """
    Move the bonus pool into the market vault so winners are paid from one
    place. The market's bonus_pool figure is kept for the payout formula.
    """
    if market['bonus_pool'] > 0:
        vault.withdraw(
            pool_vault_id(market['market_id']),
            market_vault_id(market['market_id']),
            market['bonus_pool'],
            market_authority_id(market['market_id']),
        )


def _apply_resolution(market: Market, winning_outcome: int, now: int, by_oracle: bool) -> None:
    market['status'] = MarketStatus.RESOLVED
    market['winning_outcome'] = winning_outcome
    market['resolved_at'] = now
    market['resolved_by_oracle'] = by_oracle


def resolve_market(market: Market, caller: str, winning_outcome: int, vault: Vault, now: int) -> Market:
    """Creator resolution. Only possible once betting has closed."""
    require_open(market)
    if caller != market['creator']:
        raise ledger_error('Unauthorized', f"{caller} is not the market creator")
    _check_resolution(market, winning_outcome, now)

    _consolidate_bonus_pool(market, vault)
    _apply_resolution(market, winning_outcome, now, by_oracle=False)
    logger.info(
        "Market resolved by creator: winning outcome = %d (%s)",
        winning_outcome, market['outcomes'][winning_outcome]['label'],
    )
    return market


def oracle_resolve_market(
    market: Market,
    oracle: Oracle,
    caller: str,
    winning_outcome: int,
    vault: Vault,
    now: int
) -> Market:
    """
    Resolution by the market's assigned oracle, signed by the oracle's
    registered authority.
    """
    require_open(market)
    if market['oracle'] is None:
        raise ledger_error('MarketHasNoOracle')
    if market['oracle'] != oracle['oracle_id']:
        raise ledger_error('OracleMismatch', f"market expects oracle {market['oracle']}")
    if not oracle['is_active']:
        raise ledger_error('OracleNotActive')
    if caller != oracle['authority']:
        raise ledger_error('Unauthorized', f"{caller} is not the oracle authority")
    get_outcome(market, winning_outcome)
    if not can_resolve_category(oracle, market['category']):
        raise ledger_error('OracleNotAuthorizedForCategory', market['category'].label)
    _check_resolution(market, winning_outcome, now)

    markets_resolved = checked_add(oracle['markets_resolved'], 1, U64_MAX)

    _consolidate_bonus_pool(market, vault)
    _apply_resolution(market, winning_outcome, now, by_oracle=True)
    oracle['markets_resolved'] = markets_resolved
    oracle['last_resolution_at'] = now

    logger.info(
        "Market resolved by oracle %s: winning outcome = %d (%s)",
        oracle['name'], winning_outcome, market['outcomes'][winning_outcome]['label'],
    )
    return market


def claim_winnings(market: Market, bet: Bet, caller: str, vault: Vault) -> int:
    """
    Pay a winning bet its share from the market vault and mark it claimed.
    """
    if market['status'] != MarketStatus.RESOLVED:
        raise ledger_error('MarketNotResolved')
    if bet['market_id'] != market['market_id'] or bet['bettor'] != caller:
        raise ledger_error('Unauthorized', f"bet does not belong to {caller}")
    if bet['claimed']:
        raise ledger_error('AlreadyClaimed')
    if bet['outcome_index'] != market['winning_outcome']:
        raise ledger_error('LostBet')

    payout = calculate_payout(market, bet)
    if payout == 0:
        raise ledger_error('LostBet', "nothing to distribute")

    vault.withdraw(market_vault_id(market['market_id']), caller, payout, market_authority_id(market['market_id']))
    bet['claimed'] = True

    logger.info("Winnings claimed: %d tokens", payout)
    return payout
