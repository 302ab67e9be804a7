import json
import time
from decimal import Decimal, ROUND_DOWN
from enum import Enum
from typing import Any, Dict

TOKEN_DECIMALS = 6


def get_current_ts() -> int:
    """Unix timestamp in whole seconds, the resolution every deadline is stored in."""
    return int(time.time())


def hours_from_now(hours: float, now: int | None = None) -> int:
    base = get_current_ts() if now is None else now
    return base + int(hours * 3600)


def days_from_now(days: float, now: int | None = None) -> int:
    base = get_current_ts() if now is None else now
    return base + int(days * 86400)


def format_amount(amount: int, decimals: int = TOKEN_DECIMALS) -> str:
    """
    Render an integer amount in smallest units as a fixed-point string.

    format_amount(1500000) -> '1.500000'
    """
    sign = '-' if amount < 0 else ''
    digits = str(abs(amount)).rjust(decimals + 1, '0')
    if decimals == 0:
        return sign + digits
    return f"{sign}{digits[:-decimals]}.{digits[-decimals:]}"


def parse_amount(amount: str | int | Decimal, decimals: int = TOKEN_DECIMALS) -> int:
    """
    Parse a human-readable amount into smallest units, truncating extra precision.
    """
    value = Decimal(str(amount))
    scaled = (value * (Decimal(10) ** decimals)).quantize(Decimal('1'), rounding=ROUND_DOWN)
    return int(scaled)


def byte_len(text: str) -> int:
    return len(text.encode('utf-8'))


def serialize_state(state: Dict[str, Any]) -> str:
    def default_handler(obj: Any) -> Any:
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, bytes):
            return obj.hex()
        if isinstance(obj, Decimal):
            return str(obj)
        raise TypeError(f"Object of type {type(obj)} is not JSON serializable")
    return json.dumps(state, default=default_handler)


def deserialize_state(json_str: str) -> Dict[str, Any]:
    return json.loads(json_str)
