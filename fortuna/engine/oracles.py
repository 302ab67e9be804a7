import logging
from typing import Iterable, List, Optional, Sequence

from .errors import ledger_error
from .ledger_math import checked_add
from .params import MAX_DATA_SOURCE_LEN, MAX_ORACLE_NAME_LEN, NUM_CATEGORIES, U32_MAX
from .protocol import require_authority
from .state import MarketCategory, Oracle, ProtocolConfig
from fortuna.utils import byte_len

logger = logging.getLogger(__name__)


def categories_to_flags(categories: Iterable[int | MarketCategory]) -> List[bool]:
    """Build the 12-slot authorization vector from a list of categories. Unknown codes are ignored."""
    flags = [False] * NUM_CATEGORIES
    for category in categories:
        index = int(category)
        if 0 <= index < NUM_CATEGORIES:
            flags[index] = True
    return flags


def flags_to_categories(flags: Sequence[bool]) -> List[MarketCategory]:
    return [MarketCategory(i) for i, enabled in enumerate(flags[:NUM_CATEGORIES]) if enabled]


def _validate_flags(categories: Sequence[bool]) -> List[bool]:
    if len(categories) != NUM_CATEGORIES:
        raise ledger_error('InvalidCategory', f"expected {NUM_CATEGORIES} category flags, got {len(categories)}")
    return [bool(flag) for flag in categories]


def _validate_name(name: str) -> None:
    if byte_len(name) > MAX_ORACLE_NAME_LEN:
        raise ledger_error('OracleNameTooLong')


def _validate_data_source(data_source: str) -> None:
    if byte_len(data_source) > MAX_DATA_SOURCE_LEN:
        raise ledger_error('DataSourceTooLong')


def register_oracle(
    config: ProtocolConfig,
    caller: str,
    oracle_id: int,
    authority: str,
    name: str,
    categories: Sequence[bool],
    data_source: str,
    now: int
) -> Oracle:
    require_authority(config, caller)
    if not isinstance(oracle_id, int) or not 0 <= oracle_id <= U32_MAX:
        raise ledger_error('Overflow', f"oracle_id {oracle_id!r} outside u32 range")
    _validate_name(name)
    _validate_data_source(data_source)
    flags = _validate_flags(categories)
    total_oracles = checked_add(config['total_oracles'], 1, U32_MAX)

    oracle: Oracle = {
        'oracle_id': oracle_id,
        'authority': authority,
        'name': name,
        'categories': flags,
        'data_source': data_source,
        'is_active': True,
        'markets_resolved': 0,
        'registered_at': now,
        'last_resolution_at': 0,
    }
    config['total_oracles'] = total_oracles
    logger.info("Oracle registered: %s (ID: %d)", name, oracle_id)
    return oracle


def update_oracle(
    config: ProtocolConfig,
    caller: str,
    oracle: Oracle,
    name: Optional[str] = None,
    categories: Optional[Sequence[bool]] = None,
    data_source: Optional[str] = None,
    is_active: Optional[bool] = None
) -> Oracle:
    """
    Replace any subset of name, categories, data_source and is_active.
    """
    require_authority(config, caller)
    if name is not None:
        _validate_name(name)
    if data_source is not None:
        _validate_data_source(data_source)
    flags = _validate_flags(categories) if categories is not None else None

    if name is not None:
        oracle['name'] = name
    if flags is not None:
        oracle['categories'] = flags
    if data_source is not None:
        oracle['data_source'] = data_source
    if is_active is not None:
        oracle['is_active'] = bool(is_active)

    logger.info("Oracle updated: %s", oracle['name'])
    return oracle


def can_resolve_category(oracle: Oracle, category: int | MarketCategory) -> bool:
    index = int(category)
    if 0 <= index < len(oracle['categories']) and index < NUM_CATEGORIES:
        return oracle['categories'][index]
    return False


def enable_category(oracle: Oracle, category: int | MarketCategory) -> None:
    index = int(category)
    if 0 <= index < NUM_CATEGORIES:
        oracle['categories'][index] = True


def disable_category(oracle: Oracle, category: int | MarketCategory) -> None:
    index = int(category)
    if 0 <= index < NUM_CATEGORIES:
        oracle['categories'][index] = False
