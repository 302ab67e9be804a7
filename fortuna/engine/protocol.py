import logging
from typing import Optional

from .errors import ledger_error
from .params import validate_fee_config
from .state import ProtocolConfig

logger = logging.getLogger(__name__)


def initialize_protocol(
    authority: str,
    treasury: str,
    protocol_fee_bps: int,
    creator_fee_bps: int,
    pool_fee_bps: int
) -> ProtocolConfig:
    """
    Create the protocol-wide configuration. Counters start at zero and
    licensing starts disabled.
    """
    validate_fee_config(protocol_fee_bps, creator_fee_bps, pool_fee_bps)

    config: ProtocolConfig = {
        'authority': authority,
        'treasury': treasury,
        'protocol_fee_bps': protocol_fee_bps,
        'creator_fee_bps': creator_fee_bps,
        'pool_fee_bps': pool_fee_bps,
        'total_markets': 0,
        'total_volume': 0,
        'total_oracles': 0,
        'total_licenses': 0,
        'require_license': False,
    }
    logger.info(
        "Protocol initialized with fees: pool=%dbps, creator=%dbps, protocol=%dbps",
        pool_fee_bps, creator_fee_bps, protocol_fee_bps,
    )
    return config


def require_authority(config: ProtocolConfig, caller: str) -> None:
    if caller != config['authority']:
        raise ledger_error('Unauthorized', f"{caller} is not the protocol authority")


def update_protocol(
    config: ProtocolConfig,
    caller: str,
    treasury: Optional[str] = None,
    protocol_fee_bps: Optional[int] = None,
    creator_fee_bps: Optional[int] = None,
    pool_fee_bps: Optional[int] = None
) -> ProtocolConfig:
    """
    Replace any subset of treasury and fee rates. The fee cap is checked on
    the combination of supplied and current rates before anything changes.
    """
    require_authority(config, caller)

    new_protocol = config['protocol_fee_bps'] if protocol_fee_bps is None else protocol_fee_bps
    new_creator = config['creator_fee_bps'] if creator_fee_bps is None else creator_fee_bps
    new_pool = config['pool_fee_bps'] if pool_fee_bps is None else pool_fee_bps
    validate_fee_config(new_protocol, new_creator, new_pool)

    if treasury is not None:
        config['treasury'] = treasury
        logger.info("Treasury updated to: %s", treasury)
    config['protocol_fee_bps'] = new_protocol
    config['creator_fee_bps'] = new_creator
    config['pool_fee_bps'] = new_pool
    logger.info("Fees now pool=%dbps, creator=%dbps, protocol=%dbps", new_pool, new_creator, new_protocol)
    return config


def set_require_license(config: ProtocolConfig, caller: str, require_license: bool) -> ProtocolConfig:
    require_authority(config, caller)
    config['require_license'] = bool(require_license)
    logger.info("License requirement set to: %s", config['require_license'])
    return config
