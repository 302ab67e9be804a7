import logging
from typing import List, Optional

from .errors import ledger_error
from .fees import fee_breakdown
from .ledger_math import checked_add, checked_sub
from .licenses import check_market_creation, record_market_created
from .oracles import can_resolve_category
from .params import (
    MAX_DESCRIPTION_LEN,
    MAX_ORACLE_EVENT_ID_LEN,
    MAX_OUTCOME_LEN,
    MAX_OUTCOMES,
    MAX_TITLE_LEN,
    MIN_OUTCOMES,
    U128_MAX,
    U32_MAX,
    U64_MAX,
)
from .state import (
    Bet,
    License,
    Market,
    MarketCategory,
    MarketStatus,
    Oracle,
    ProtocolConfig,
    decode_category,
    get_outcome,
    is_betting_closed,
    market_authority_id,
    market_vault_id,
    pool_vault_id,
    total_bettors,
)
from .vault import Vault, split_stake
from fortuna.utils import byte_len

logger = logging.getLogger(__name__)


def _validate_market_inputs(
    title: str,
    description: str,
    outcomes: List[str],
    bet_amount: int,
    oracle_event_id: str,
    betting_deadline: int,
    resolution_deadline: int,
    now: int
) -> None:
    if byte_len(title) > MAX_TITLE_LEN:
        raise ledger_error('TitleTooLong')
    if byte_len(description) > MAX_DESCRIPTION_LEN:
        raise ledger_error('DescriptionTooLong')
    if len(outcomes) < MIN_OUTCOMES:
        raise ledger_error('TooFewOutcomes')
    if len(outcomes) > MAX_OUTCOMES:
        raise ledger_error('TooManyOutcomes')
    for label in outcomes:
        if byte_len(label) > MAX_OUTCOME_LEN:
            raise ledger_error('OutcomeLabelTooLong', label)
    if not isinstance(bet_amount, int) or bet_amount <= 0 or bet_amount > U64_MAX:
        raise ledger_error('InvalidBetAmount', repr(bet_amount))
    if byte_len(oracle_event_id) > MAX_ORACLE_EVENT_ID_LEN:
        raise ledger_error('OracleEventIdTooLong')
    if betting_deadline <= now:
        raise ledger_error('InvalidDeadline', "betting deadline must be in the future")
    if resolution_deadline < betting_deadline:
        raise ledger_error('InvalidDeadline', "resolution deadline precedes betting deadline")


def create_market(
    config: ProtocolConfig,
    market_id: int,
    creator: str,
    creator_fee_wallet: str,
    token_mint: str,
    category: int | MarketCategory,
    title: str,
    description: str,
    bet_amount: int,
    betting_deadline: int,
    resolution_deadline: int,
    outcomes: List[str],
    now: int,
    oracle_event_id: str = '',
    license_: Optional[License] = None,
    domain: Optional[str] = None
) -> Market:
    """
    Create an Open market with zeroed pools.

    When the protocol requires a license, ``license_`` must entitle the
    creator; its quota is debited only after every other check has passed.
    """
    if not isinstance(market_id, int) or not 0 <= market_id <= U64_MAX:
        raise ledger_error('Overflow', f"market_id {market_id!r} outside u64 range")
    _validate_market_inputs(
        title, description, outcomes, bet_amount, oracle_event_id,
        betting_deadline, resolution_deadline, now,
    )
    market_category = decode_category(category)

    gating_license: Optional[License] = None
    if config['require_license']:
        gating_license = check_market_creation(license_, creator, now, domain)

    total_markets = checked_add(config['total_markets'], 1, U64_MAX)

    market: Market = {
        'market_id': market_id,
        'creator': creator,
        'creator_fee_wallet': creator_fee_wallet,
        'token_mint': token_mint,
        'category': market_category,
        'oracle': None,
        'oracle_event_id': oracle_event_id,
        'title': title,
        'description': description,
        'bet_amount': bet_amount,
        'betting_deadline': betting_deadline,
        'resolution_deadline': resolution_deadline,
        'status': MarketStatus.OPEN,
        'winning_outcome': None,
        'total_pool': 0,
        'bonus_pool': 0,
        'outcomes': [{'label': label, 'total_amount': 0, 'bettor_count': 0} for label in outcomes],
        'created_at': now,
        'resolved_at': 0,
        'resolved_by_oracle': False,
        'license_key': gating_license['license_key'] if gating_license else None,
    }

    if gating_license is not None:
        record_market_created(gating_license, now)
    config['total_markets'] = total_markets

    logger.info(
        "Market created: %s [%s] with %d outcomes, bet amount: %d",
        title, market_category.label, len(outcomes), bet_amount,
    )
    return market


def require_open(market: Market) -> None:
    if market['status'] != MarketStatus.OPEN:
        raise ledger_error('MarketNotOpen', f"market {market['market_id']} is {market['status'].value}")


def assign_oracle(
    config: ProtocolConfig,
    market: Market,
    caller: str,
    oracle: Oracle,
    license_: Optional[License] = None
) -> Market:
    """
    One-shot binding of an oracle to a market.
    """
    require_open(market)
    if caller != market['creator']:
        raise ledger_error('Unauthorized', f"{caller} is not the market creator")
    if market['oracle'] is not None:
        raise ledger_error('MarketAlreadyHasOracle')
    if not oracle['is_active']:
        raise ledger_error('OracleNotActive')
    if config['require_license'] and market['license_key'] is not None:
        if license_ is None or license_['license_key'] != market['license_key']:
            raise ledger_error('LicenseRequired')
        if not license_['features']['can_use_oracles']:
            raise ledger_error('FeatureNotEnabled', 'can_use_oracles')
    if not can_resolve_category(oracle, market['category']):
        raise ledger_error('OracleNotAuthorizedForCategory', market['category'].label)

    market['oracle'] = oracle['oracle_id']
    logger.info("Oracle %s assigned to market %s", oracle['name'], market['title'])
    return market


def place_bet(
    config: ProtocolConfig,
    market: Market,
    bettor: str,
    outcome_index: int,
    vault: Vault,
    now: int,
    existing_bet: Optional[Bet] = None
) -> Bet:
    """
    Stake the market's fixed bet amount on ``outcome_index``.

    The stake is split four ways in one vault call: net stake to the market
    vault, pool fee to the bonus vault, protocol fee to the treasury and
    creator fee to the creator's fee wallet. Pools are only touched once the
    transfer has gone through.
    """
    require_open(market)
    if existing_bet is not None:
        raise ledger_error('BetAlreadyPlaced', f"{bettor} on market {market['market_id']}")
    outcome = get_outcome(market, outcome_index)
    if is_betting_closed(market, now):
        raise ledger_error('BettingDeadlinePassed')

    bet_amount = market['bet_amount']
    fees = fee_breakdown(bet_amount, config)
    net_amount = fees['net_amount']

    new_total_pool = checked_add(market['total_pool'], net_amount)
    new_bonus_pool = checked_add(market['bonus_pool'], fees['pool_fee'])
    new_outcome_total = checked_add(outcome['total_amount'], net_amount)
    new_bettor_count = checked_add(outcome['bettor_count'], 1, U32_MAX)
    new_volume = checked_add(config['total_volume'], bet_amount, U128_MAX)

    split_stake(bettor, vault, [
        (market_vault_id(market['market_id']), net_amount),
        (pool_vault_id(market['market_id']), fees['pool_fee']),
        (config['treasury'], fees['protocol_fee']),
        (market['creator_fee_wallet'], fees['creator_fee']),
    ])

    market['total_pool'] = new_total_pool
    market['bonus_pool'] = new_bonus_pool
    outcome['total_amount'] = new_outcome_total
    outcome['bettor_count'] = new_bettor_count
    config['total_volume'] = new_volume

    bet: Bet = {
        'market_id': market['market_id'],
        'bettor': bettor,
        'outcome_index': outcome_index,
        'original_amount': bet_amount,
        'pool_amount': net_amount,
        'claimed': False,
        'placed_at': now,
    }
    logger.info("Bet placed: %d on outcome %s (index %d)", bet_amount, outcome['label'], outcome_index)
    return bet


def cancel_market(config: ProtocolConfig, market: Market, caller: str) -> Market:
    """
    Move an Open market to Cancelled.

    The creator may only cancel a market nobody has staked on; the protocol
    authority may cancel any Open market, after which stakes come back
    through ``claim_refund``.
    """
    require_open(market)
    if caller != config['authority']:
        if caller != market['creator']:
            raise ledger_error('Unauthorized', f"{caller} cannot cancel market {market['market_id']}")
        if total_bettors(market) > 0:
            raise ledger_error('MarketHasBets', f"{total_bettors(market)} bettors")

    market['status'] = MarketStatus.CANCELLED
    logger.info("Market cancelled: %s", market['title'])
    return market


def _require_bet_owner(market: Market, bet: Bet, caller: str) -> None:
    if bet['market_id'] != market['market_id'] or bet['bettor'] != caller:
        raise ledger_error('Unauthorized', f"bet does not belong to {caller}")


def withdraw_bet(market: Market, bet: Bet, caller: str, vault: Vault, now: int) -> int:
    """
    Pull a stake back out before betting closes. Fees are not refunded; the
    pool fee stays in the bonus pool.
    """
    require_open(market)
    _require_bet_owner(market, bet, caller)
    if bet['claimed']:
        raise ledger_error('BetAlreadyWithdrawn')
    if is_betting_closed(market, now):
        raise ledger_error('WithdrawDeadlinePassed')

    amount = bet['pool_amount']
    outcome = get_outcome(market, bet['outcome_index'])
    new_total_pool = checked_sub(market['total_pool'], amount)
    new_outcome_total = checked_sub(outcome['total_amount'], amount)
    new_bettor_count = checked_sub(outcome['bettor_count'], 1)

    if amount > 0:
        vault.withdraw(market_vault_id(market['market_id']), caller, amount, market_authority_id(market['market_id']))

    market['total_pool'] = new_total_pool
    outcome['total_amount'] = new_outcome_total
    outcome['bettor_count'] = new_bettor_count
    bet['claimed'] = True

    logger.info("Bet withdrawn: %d tokens (fees non-refundable)", amount)
    return amount


def claim_refund(market: Market, bet: Bet, caller: str, vault: Vault) -> int:
    """Return a bet's net stake from a cancelled market."""
    if market['status'] != MarketStatus.CANCELLED:
        raise ledger_error('MarketNotCancelled')
    _require_bet_owner(market, bet, caller)
    if bet['claimed']:
        raise ledger_error('AlreadyClaimed')

    amount = bet['pool_amount']
    if amount > 0:
        vault.withdraw(market_vault_id(market['market_id']), caller, amount, market_authority_id(market['market_id']))
    bet['claimed'] = True

    logger.info("Refund claimed: %d tokens", amount)
    return amount
