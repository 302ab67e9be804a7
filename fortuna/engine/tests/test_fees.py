import pytest

from fortuna.engine.errors import LedgerError, ResourceError, ValidationError
from fortuna.engine.fees import compute_fees, fee_breakdown, total_fee_bps
from fortuna.engine.params import U64_MAX, validate_fee_config
from fortuna.engine.protocol import initialize_protocol
from fortuna.engine.state import ProtocolConfig


@pytest.fixture
def config() -> ProtocolConfig:
    return initialize_protocol('admin', 'treasury', 50, 50, 500)


def test_default_split(config: ProtocolConfig):
    fees = fee_breakdown(10000, config)
    assert fees['pool_fee'] == 500
    assert fees['creator_fee'] == 50
    assert fees['protocol_fee'] == 50
    assert fees['net_amount'] == 9400
    assert fees['total_fees'] == 600
    assert total_fee_bps(config) == 600


@pytest.mark.parametrize("amount", [0, 1, 7, 99, 10000, 123457, 10**12 + 3, U64_MAX])
@pytest.mark.parametrize("rates", [(500, 50, 50), (0, 0, 0), (333, 333, 334), (1000, 0, 0)])
def test_fee_conservation(amount: int, rates):
    pool_bps, creator_bps, protocol_bps = rates
    pool_fee, creator_fee, protocol_fee, net = compute_fees(amount, pool_bps, creator_bps, protocol_bps)
    assert pool_fee + creator_fee + protocol_fee + net == amount
    assert min(pool_fee, creator_fee, protocol_fee, net) >= 0
    assert pool_fee == amount * pool_bps // 10000


def test_truncation_dust_stays_in_net():
    # 99 * 50 / 10000 floors to 0 for every fee
    assert compute_fees(99, 50, 50, 50) == (0, 0, 0, 99)
    assert compute_fees(201, 500, 50, 50) == (10, 1, 1, 189)


def test_zero_rates_leave_full_net():
    assert compute_fees(10000, 0, 0, 0) == (0, 0, 0, 10000)


@pytest.mark.parametrize("amount", [-1, U64_MAX + 1])
def test_amount_outside_u64_rejected(amount: int):
    with pytest.raises(ResourceError, match="Arithmetic overflow"):
        compute_fees(amount, 500, 50, 50)


def test_rate_outside_denominator_rejected():
    with pytest.raises(ValidationError) as exc:
        compute_fees(100, 10001, 0, 0)
    assert exc.value.code == 'InvalidFeeConfig'


@pytest.mark.parametrize("rates", [(1000, 0, 0), (400, 300, 300), (0, 0, 0)])
def test_validate_fee_config_accepts_up_to_cap(rates):
    validate_fee_config(*rates)


@pytest.mark.parametrize("rates", [(1001, 0, 0), (400, 300, 301), (-1, 0, 0)])
def test_validate_fee_config_rejects(rates):
    with pytest.raises(LedgerError, match="Invalid fee configuration"):
        validate_fee_config(*rates)
