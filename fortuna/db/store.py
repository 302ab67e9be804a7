import copy
from typing import Any, Dict, List, Optional, Tuple

from fortuna.engine.errors import ledger_error
from fortuna.engine.state import (
    Bet,
    License,
    Market,
    Oracle,
    ProtocolConfig,
    deserialize_license,
    deserialize_market,
)

BetKey = Tuple[int, str]

_MISSING = object()


class LedgerStore:
    """
    Keyed storage for ledger records.

    Records are addressed the way the ledger identifies them: licenses by key
    hex, oracles by oracle_id, markets by market_id and bets by
    (market_id, bettor), which is what makes a second bet on the same market
    impossible.
    """

    def __init__(self) -> None:
        self.protocol: Optional[ProtocolConfig] = None
        self.licenses: Dict[str, License] = {}
        self.oracles: Dict[int, Oracle] = {}
        self.markets: Dict[int, Market] = {}
        self.bets: Dict[BetKey, Bet] = {}
        self.events: List[Dict[str, Any]] = []
        self._journal: Optional[Dict[Tuple[str, Any], Tuple[Any, Any]]] = None
        self._events_mark = 0

    # Journal
    def begin(self) -> None:
        """
        Start recording originals of the records touched from here on.

        Only records reached through the accessors below are journaled, so the
        cost of a rollback depends on what the operation touched, not on the
        size of the ledger.
        """
        self._journal = {}
        self._events_mark = len(self.events)

    def commit(self) -> None:
        self._journal = None

    def rollback(self) -> None:
        journal, self._journal = self._journal, None
        if journal is None:
            return
        for (table, key), (record, original) in journal.items():
            if table == 'protocol':
                self.protocol = self._restored(record, original)
                continue
            records = getattr(self, table)
            if record is _MISSING:
                records.pop(key, None)
            else:
                records[key] = self._restored(record, original)
        del self.events[self._events_mark:]

    @staticmethod
    def _restored(record: Any, original: Any) -> Any:
        if record is _MISSING:
            return None
        # Restore in place so references held by callers stay valid
        record.clear()
        record.update(original)
        return record

    def _touch(self, table: str, key: Any = None) -> None:
        if self._journal is None or (table, key) in self._journal:
            return
        if table == 'protocol':
            record = _MISSING if self.protocol is None else self.protocol
        else:
            record = getattr(self, table).get(key, _MISSING)
        original = None if record is _MISSING else copy.deepcopy(record)
        self._journal[(table, key)] = (record, original)

    # Protocol
    def get_protocol(self) -> ProtocolConfig:
        if self.protocol is None:
            raise ledger_error('ProtocolNotInitialized')
        self._touch('protocol')
        return self.protocol

    def set_protocol(self, config: ProtocolConfig) -> None:
        if self.protocol is not None:
            raise ledger_error('ProtocolAlreadyInitialized')
        self._touch('protocol')
        self.protocol = config

    # Licenses
    def find_license(self, license_key: str) -> Optional[License]:
        self._touch('licenses', license_key)
        return self.licenses.get(license_key)

    def get_license(self, license_key: str) -> License:
        license_ = self.find_license(license_key)
        if license_ is None:
            raise ledger_error('RecordNotFound', f"license {license_key}")
        return license_

    def add_license(self, license_: License) -> None:
        key = license_['license_key']
        if key in self.licenses:
            raise ledger_error('LicenseAlreadyExists', key)
        self._touch('licenses', key)
        self.licenses[key] = license_

    # Oracles
    def get_oracle(self, oracle_id: int) -> Oracle:
        self._touch('oracles', oracle_id)
        try:
            return self.oracles[oracle_id]
        except KeyError:
            raise ledger_error('RecordNotFound', f"oracle {oracle_id}") from None

    def add_oracle(self, oracle: Oracle) -> None:
        oracle_id = oracle['oracle_id']
        if oracle_id in self.oracles:
            raise ledger_error('OracleAlreadyExists', f"oracle {oracle_id}")
        self._touch('oracles', oracle_id)
        self.oracles[oracle_id] = oracle

    # Markets
    def get_market(self, market_id: int) -> Market:
        self._touch('markets', market_id)
        try:
            return self.markets[market_id]
        except KeyError:
            raise ledger_error('RecordNotFound', f"market {market_id}") from None

    def add_market(self, market: Market) -> None:
        market_id = market['market_id']
        if market_id in self.markets:
            raise ledger_error('MarketAlreadyExists', f"market {market_id}")
        self._touch('markets', market_id)
        self.markets[market_id] = market

    # Bets
    def find_bet(self, market_id: int, bettor: str) -> Optional[Bet]:
        self._touch('bets', (market_id, bettor))
        return self.bets.get((market_id, bettor))

    def get_bet(self, market_id: int, bettor: str) -> Bet:
        bet = self.find_bet(market_id, bettor)
        if bet is None:
            raise ledger_error('RecordNotFound', f"bet by {bettor} on market {market_id}")
        return bet

    def add_bet(self, bet: Bet) -> None:
        key = (bet['market_id'], bet['bettor'])
        if key in self.bets:
            raise ledger_error('BetAlreadyPlaced', f"{bet['bettor']} on market {bet['market_id']}")
        self._touch('bets', key)
        self.bets[key] = bet


def serialize_store(store: LedgerStore) -> Dict[str, Any]:
    """
    JSON-compatible form of the store. Integer and tuple keys become strings;
    bets are stored as a list since their key is derivable from the record.
    """
    return {
        'protocol': store.protocol,
        'licenses': dict(store.licenses),
        'oracles': {str(k): v for k, v in store.oracles.items()},
        'markets': {str(k): v for k, v in store.markets.items()},
        'bets': list(store.bets.values()),
    }


def deserialize_store(data: Dict[str, Any]) -> LedgerStore:
    store = LedgerStore()
    store.protocol = data.get('protocol')
    store.licenses = {k: deserialize_license(v) for k, v in data.get('licenses', {}).items()}
    store.oracles = {int(k): v for k, v in data.get('oracles', {}).items()}
    store.markets = {int(k): deserialize_market(v) for k, v in data.get('markets', {}).items()}
    store.bets = {(bet['market_id'], bet['bettor']): bet for bet in data.get('bets', [])}
    return store
