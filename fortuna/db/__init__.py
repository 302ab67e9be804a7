# fortuna/db/__init__.py

from .store import LedgerStore, deserialize_store, serialize_store
from .queries import (
    get_db,
    save_ledger_snapshot,
    load_ledger_snapshot,
    insert_events,
    fetch_events,
)
