from typing import Any, Dict, List

import numpy as np

from fortuna.engine.oracles import flags_to_categories
from fortuna.engine.state import Market, Oracle, has_oracle, total_bettors


def market_stats(market: Market) -> Dict[str, Any]:
    """
    Display statistics for a market.

    Per outcome: share of the staked pool (percent) and the implied payout
    multiplier if that outcome won, i.e. (total_pool + bonus_pool) / outcome
    total. Outcomes nobody staked on report a multiplier of 0.
    """
    amounts = np.array([o['total_amount'] for o in market['outcomes']], dtype=np.float64)
    total_pool = float(market['total_pool'])
    distributable = total_pool + float(market['bonus_pool'])

    if total_pool > 0:
        percentages = amounts / total_pool * 100.0
    else:
        percentages = np.zeros_like(amounts)
    multipliers = np.divide(
        distributable, amounts,
        out=np.zeros_like(amounts), where=amounts > 0,
    )

    outcomes: List[Dict[str, Any]] = []
    for i, outcome in enumerate(market['outcomes']):
        outcomes.append({
            'index': i,
            'label': outcome['label'],
            'amount': outcome['total_amount'],
            'bettor_count': outcome['bettor_count'],
            'percentage': round(float(percentages[i]), 2),
            'multiplier': round(float(multipliers[i]), 4),
        })

    return {
        'market_id': market['market_id'],
        'title': market['title'],
        'category': market['category'].label,
        'status': market['status'].value,
        'total_bettors': total_bettors(market),
        'total_pool': market['total_pool'],
        'bonus_pool': market['bonus_pool'],
        'has_oracle': has_oracle(market),
        'winning_outcome': market['winning_outcome'],
        'outcomes': outcomes,
    }


def oracle_stats(oracle: Oracle) -> Dict[str, Any]:
    return {
        'oracle_id': oracle['oracle_id'],
        'name': oracle['name'],
        'markets_resolved': oracle['markets_resolved'],
        'categories': [c.label for c in flags_to_categories(oracle['categories'])],
        'is_active': oracle['is_active'],
    }
