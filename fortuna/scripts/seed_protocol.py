import argparse
import logging
from typing import Any, Dict

from fortuna.config import get_default_protocol_params
from fortuna.db.queries import insert_events, load_ledger_snapshot, save_ledger_snapshot
from fortuna.engine.fees import total_fee_bps
from fortuna.services.ledger import LedgerService

logger = logging.getLogger(__name__)


def seed_protocol(authority: str, overrides: Dict[str, Any] | None = None) -> None:
    """
    Initialize the protocol config from defaults plus overrides and persist the
    ledger snapshot. An already-initialized ledger is left untouched.
    """
    store = load_ledger_snapshot()
    if store.protocol is not None:
        logger.warning("Protocol already initialized; authority is %s", store.protocol['authority'])
        return

    params: Dict[str, Any] = dict(get_default_protocol_params())
    if overrides:
        for key, value in overrides.items():
            if key in params:
                params[key] = value
            else:
                logger.warning("Override key '%s' is not a protocol parameter", key)

    service = LedgerService(store)
    service.initialize_protocol(
        authority,
        params['treasury'],
        params['protocol_fee_bps'],
        params['creator_fee_bps'],
        params['pool_fee_bps'],
    )
    if params['require_license']:
        service.set_require_license(authority, True)

    save_ledger_snapshot(store)
    insert_events(store.events)
    logger.info(
        "Protocol seeded for authority %s, total fee %d bps", authority, total_fee_bps(store.get_protocol()),
    )


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description="Initialize the protocol config with optional overrides.")
    parser.add_argument("authority", type=str, help="Protocol authority identifier")
    parser.add_argument("--treasury", type=str, help="Treasury account receiving protocol fees")
    parser.add_argument("--protocol_fee_bps", type=int, help="Protocol fee in basis points")
    parser.add_argument("--creator_fee_bps", type=int, help="Creator fee in basis points")
    parser.add_argument("--pool_fee_bps", type=int, help="Bonus pool fee in basis points")
    parser.add_argument("--require_license", action="store_true", default=None,
                        help="Require a license for market creation")

    args = parser.parse_args()
    overrides = {k: v for k, v in vars(args).items() if v is not None and k != 'authority'}
    seed_protocol(args.authority, overrides)
