import pytest

from rebalance_engine import AllocationDiffEngine
from conftest import make_snapshot, targets


@pytest.fixture
def engine(config):
    return AllocationDiffEngine(config=config)


def _by_instrument(result):
    return {d.instrument: d for d in result.diffs}


def test_overweight_holding_becomes_sell(engine):
    snapshot = make_snapshot(1000.0, positions=[("AAPL_US_EQ", 10.0, 500.0)])

    result = engine.compute_diffs(snapshot, targets(AAPL_US_EQ=0.3), {})

    diff = _by_instrument(result)["AAPL_US_EQ"]
    assert diff.target_value == pytest.approx(300.0)
    assert diff.difference == pytest.approx(-200.0)
    assert diff.action == 'sell'
    assert [d.instrument for d in result.sells] == ["AAPL_US_EQ"]
    assert result.buys == []


def test_untargeted_position_gets_zero_weight(engine):
    snapshot = make_snapshot(1000.0, positions=[("BBB_US_EQ", 5.0, 50.0)])

    diff = _by_instrument(engine.compute_diffs(snapshot, targets(AAPL_US_EQ=1.0), {}))["BBB_US_EQ"]

    assert diff.target_weight == 0.0
    assert diff.difference == pytest.approx(-50.0)
    assert diff.action == 'sell'


def test_target_not_held_becomes_buy(engine):
    snapshot = make_snapshot(1000.0)

    diff = _by_instrument(engine.compute_diffs(snapshot, targets(MSFT_US_EQ=0.7), {}))["MSFT_US_EQ"]

    assert diff.difference == pytest.approx(700.0)
    assert diff.has_position is False
    assert diff.action == 'buy'


@pytest.mark.parametrize("market_value, expected", [
    (501.0, 'none'),   # difference -1.00 sits on the deadband
    (499.0, 'none'),   # +1.00
    (501.5, 'sell'),
    (498.5, 'buy'),
])
def test_deadband_is_exclusive(engine, market_value, expected):
    snapshot = make_snapshot(1000.0, positions=[("AAPL_US_EQ", 10.0, market_value)])

    diff = _by_instrument(engine.compute_diffs(snapshot, targets(AAPL_US_EQ=0.5), {}))["AAPL_US_EQ"]

    assert diff.action == expected


def test_pending_cash_counts_toward_effective_value(engine):
    snapshot = make_snapshot(1000.0)

    diff = _by_instrument(engine.compute_diffs(snapshot, targets(MSFT_US_EQ=0.5), {"MSFT_US_EQ": 450.0}))["MSFT_US_EQ"]

    assert diff.effective_value == pytest.approx(450.0)
    assert diff.difference == pytest.approx(50.0)
    assert diff.action == 'buy'


def test_pending_only_instrument_is_in_universe_but_never_sold(engine):
    snapshot = make_snapshot(1000.0)

    result = engine.compute_diffs(snapshot, targets(MSFT_US_EQ=1.0), {"TSLA_US_EQ": 80.0})

    diff = _by_instrument(result)["TSLA_US_EQ"]
    assert diff.difference == pytest.approx(-80.0)
    assert diff.action == 'none'
    assert result.sells == []


def test_balanced_portfolio_produces_no_orders(engine):
    snapshot = make_snapshot(
        1000.0,
        positions=[("AAPL_US_EQ", 6.0, 300.0), ("MSFT_US_EQ", 2.0, 700.0)],
    )

    result = engine.compute_diffs(snapshot, targets(AAPL_US_EQ=0.3, MSFT_US_EQ=0.7), {})

    assert result.sells == []
    assert result.buys == []


def test_first_duplicate_target_wins(engine):
    snapshot = make_snapshot(1000.0)
    allocations = targets(MSFT_US_EQ=0.2) + targets(MSFT_US_EQ=0.8)

    diff = _by_instrument(engine.compute_diffs(snapshot, allocations, {}))["MSFT_US_EQ"]

    assert diff.target_weight == 0.2


def test_diffs_are_ordered_by_instrument(engine):
    snapshot = make_snapshot(1000.0, positions=[("ZZZ_US_EQ", 1.0, 10.0)])

    result = engine.compute_diffs(snapshot, targets(MSFT_US_EQ=0.5, AAPL_US_EQ=0.5), {})

    assert [d.instrument for d in result.diffs] == ["AAPL_US_EQ", "MSFT_US_EQ", "ZZZ_US_EQ"]
