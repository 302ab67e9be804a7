import logging
from typing import Any, Dict, List

from supabase import Client

from fortuna.config import get_supabase_client
from fortuna.utils import deserialize_state, get_current_ts, serialize_state
from .store import LedgerStore, deserialize_store, serialize_store

logger = logging.getLogger(__name__)

LEDGER_STATE_TABLE = 'ledger_state'
LEDGER_EVENTS_TABLE = 'ledger_events'


def get_db() -> Client:
    return get_supabase_client()


# State queries
def save_ledger_snapshot(store: LedgerStore) -> None:
    """
    Upsert the whole ledger as a single JSONB row. Enum fields are written as
    their raw values.
    """
    db = get_db()
    state = deserialize_state(serialize_state(serialize_store(store)))
    db.table(LEDGER_STATE_TABLE).upsert({'state_id': 1, 'state': state, 'saved_at': get_current_ts()}).execute()
    logger.info(
        "Ledger snapshot saved: %d markets, %d bets, %d licenses, %d oracles",
        len(store.markets), len(store.bets), len(store.licenses), len(store.oracles),
    )


def load_ledger_snapshot() -> LedgerStore:
    db = get_db()
    result = db.table(LEDGER_STATE_TABLE).select('state').eq('state_id', 1).limit(1).execute()
    if result.data and result.data[0].get('state'):
        return deserialize_store(result.data[0]['state'])
    return LedgerStore()


# Events queries
def insert_events(events: List[Dict[str, Any]]) -> None:
    """Append ledger events; each needs at least a 'type'."""
    supported_fields = {'type', 'market_id', 'payload', 'ts'}

    rows = []
    for event in events:
        if 'type' not in event:
            raise ValueError(f"Event missing required 'type' field: {event}")
        row = {k: v for k, v in event.items() if k in supported_fields}
        row.setdefault('payload', {})
        row.setdefault('ts', get_current_ts())
        rows.append(row)

    if rows:
        db = get_db()
        db.table(LEDGER_EVENTS_TABLE).insert(deserialize_state(serialize_state({'rows': rows}))['rows']).execute()


def fetch_events(market_id: int | None = None) -> List[Dict[str, Any]]:
    db = get_db()
    query = db.table(LEDGER_EVENTS_TABLE).select('*')
    if market_id is not None:
        query = query.eq('market_id', market_id)
    return query.order('ts').execute().data
