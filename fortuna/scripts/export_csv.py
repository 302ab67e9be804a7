import argparse
import logging

import pandas as pd

from fortuna.db.queries import fetch_events, load_ledger_snapshot
from fortuna.db.store import LedgerStore
from fortuna.utils import format_amount

logger = logging.getLogger(__name__)


def markets_frame(store: LedgerStore) -> pd.DataFrame:
    rows = []
    for market in store.markets.values():
        rows.append({
            'market_id': market['market_id'],
            'title': market['title'],
            'category': market['category'].label,
            'status': market['status'].value,
            'creator': market['creator'],
            'bet_amount': format_amount(market['bet_amount']),
            'total_pool': format_amount(market['total_pool']),
            'bonus_pool': format_amount(market['bonus_pool']),
            'bettors': sum(o['bettor_count'] for o in market['outcomes']),
            'winning_outcome': market['winning_outcome'],
            'resolved_by_oracle': market['resolved_by_oracle'],
        })
    return pd.DataFrame(rows)


def bets_frame(store: LedgerStore) -> pd.DataFrame:
    rows = []
    for bet in store.bets.values():
        market = store.markets.get(bet['market_id'])
        rows.append({
            'market_id': bet['market_id'],
            'bettor': bet['bettor'],
            'outcome_index': bet['outcome_index'],
            'outcome': market['outcomes'][bet['outcome_index']]['label'] if market else None,
            'original_amount': bet['original_amount'],
            'pool_amount': bet['pool_amount'],
            'claimed': bet['claimed'],
            'placed_at': bet['placed_at'],
        })
    return pd.DataFrame(rows)


def export_markets_csv(filename: str) -> None:
    df = markets_frame(load_ledger_snapshot())
    df.to_csv(filename, index=False)
    logger.info("Exported %d markets to %s", len(df), filename)


def export_bets_csv(filename: str) -> None:
    df = bets_frame(load_ledger_snapshot())
    df.to_csv(filename, index=False)
    logger.info("Exported %d bets to %s", len(df), filename)


def export_events_csv(filename: str) -> None:
    df = pd.DataFrame(fetch_events())
    df.to_csv(filename, index=False)
    logger.info("Exported %d events to %s", len(df), filename)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description="Export ledger records to CSV.")
    parser.add_argument("--markets", type=str, help="Output path for markets")
    parser.add_argument("--bets", type=str, help="Output path for bets")
    parser.add_argument("--events", type=str, help="Output path for events")
    args = parser.parse_args()

    if args.markets:
        export_markets_csv(args.markets)
    if args.bets:
        export_bets_csv(args.bets)
    if args.events:
        export_events_csv(args.events)
