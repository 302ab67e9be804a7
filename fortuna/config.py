from typing_extensions import TypedDict
import os
from dotenv import load_dotenv
from supabase import create_client, Client

DEFAULT_TREASURY = '6Lbx8fvKRf1aE8Zi977sGHYqNeKvzxyjnGt5pee9FwoZ'


def load_env(required_vars: list[str] | None = None) -> dict[str, str | None]:
    # Try to load from .env file (for local development)
    load_dotenv()

    if required_vars is None:
        required_vars = ['SUPABASE_URL', 'SUPABASE_SERVICE_KEY']
    env_vars: dict[str, str | None] = {}

    for key in required_vars:
        value = os.getenv(key)
        env_vars[key] = value
        if value is None:
            raise ValueError(f"Missing required environment variable: {key}. "
                             f"Please set it in the environment or in a .env file.")

    env_vars['FORTUNA_TREASURY'] = os.getenv('FORTUNA_TREASURY')
    return env_vars


def get_supabase_client() -> Client:
    env = load_env()
    return create_client(env['SUPABASE_URL'], env['SUPABASE_SERVICE_KEY'])


class ProtocolParams(TypedDict):
    protocol_fee_bps: int
    creator_fee_bps: int
    pool_fee_bps: int
    treasury: str
    require_license: bool


def get_default_protocol_params() -> ProtocolParams:
    load_dotenv()
    return ProtocolParams(
        protocol_fee_bps=50,   # 0.5%
        creator_fee_bps=50,    # 0.5%
        pool_fee_bps=500,      # 5%, redistributed to winners through the bonus pool
        treasury=os.getenv('FORTUNA_TREASURY') or DEFAULT_TREASURY,
        require_license=False,
    )
