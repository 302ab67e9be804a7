# fortuna/services/__init__.py

# Exports the service-layer entry points used by the scripts and tests.
from .ledger import LedgerService
from .summary import market_stats, oracle_stats
