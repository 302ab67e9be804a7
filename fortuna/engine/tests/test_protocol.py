import pytest

from fortuna.engine.errors import AuthorizationError, ValidationError
from fortuna.engine.protocol import initialize_protocol, set_require_license, update_protocol
from fortuna.engine.state import ProtocolConfig


@pytest.fixture
def config() -> ProtocolConfig:
    return initialize_protocol('admin', 'treasury', 50, 50, 500)


def test_initialize_protocol_defaults(config: ProtocolConfig):
    assert config['authority'] == 'admin'
    assert config['treasury'] == 'treasury'
    assert config['require_license'] is False
    for counter in ('total_markets', 'total_volume', 'total_oracles', 'total_licenses'):
        assert config[counter] == 0


def test_initialize_protocol_rejects_fee_total_over_cap():
    with pytest.raises(ValidationError, match="Invalid fee configuration"):
        initialize_protocol('admin', 'treasury', 500, 500, 1)


def test_update_protocol_partial(config: ProtocolConfig):
    update_protocol(config, 'admin', pool_fee_bps=800)
    assert config['pool_fee_bps'] == 800
    assert config['creator_fee_bps'] == 50
    assert config['treasury'] == 'treasury'

    update_protocol(config, 'admin', treasury='new_treasury')
    assert config['treasury'] == 'new_treasury'
    assert config['pool_fee_bps'] == 800


def test_update_protocol_checks_combined_total(config: ProtocolConfig):
    # 50 + 50 + 901 breaks the cap even though only one rate is supplied
    with pytest.raises(ValidationError):
        update_protocol(config, 'admin', treasury='other', pool_fee_bps=901)
    assert config['pool_fee_bps'] == 500
    assert config['treasury'] == 'treasury'


def test_update_protocol_requires_authority(config: ProtocolConfig):
    with pytest.raises(AuthorizationError, match="Unauthorized"):
        update_protocol(config, 'mallory', pool_fee_bps=0)


def test_set_require_license(config: ProtocolConfig):
    set_require_license(config, 'admin', True)
    assert config['require_license'] is True
    with pytest.raises(AuthorizationError):
        set_require_license(config, 'mallory', False)
    assert config['require_license'] is True
