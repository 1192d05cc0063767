"""
Shared test fixtures: in-memory broker, resolver, context provider and sink.
"""

from typing import Dict, List, Optional

import pytest

from broker_gateway import (
    AccountContext,
    AccountContextProvider,
    AccountSnapshot,
    BrokerConnectionError,
    BrokerGateway,
    OrderLimits,
    OrderResult,
    OutstandingQuantityOrder,
    OutstandingValueOrder,
    Position,
    ProgressEvent,
    ProgressSink,
    TargetAllocation,
    TickerResolver,
)
from rebalance_engine import Pacer, RebalanceOrchestrator
from rebalancer_config import AppConfig

DEMO_CONTEXT = AccountContext(
    account_id="12345",
    trading_mode="DEMO",
    session_token="TRADING212_SESSION_DEMO=abc",
    device_id="0f1e2d3c-4b5a-4968-8776-655443322110",
)


def make_snapshot(total_equity, positions=(), value_orders=(), quantity_orders=()) -> AccountSnapshot:
    """positions are (instrument, quantity, market_value) tuples; price is derived"""
    return AccountSnapshot(
        account_id=DEMO_CONTEXT.account_id,
        total_equity=total_equity,
        positions=[
            Position(
                instrument=code,
                quantity=qty,
                market_value=value,
                current_price=(value / qty) if qty else None
            )
            for code, qty, value in positions
        ],
        outstanding_value_orders=[
            OutstandingValueOrder(instrument=code, value=value) for code, value in value_orders
        ],
        outstanding_quantity_orders=[
            OutstandingQuantityOrder(instrument=code, quantity=qty) for code, qty in quantity_orders
        ],
    )


def targets(**weights) -> List[TargetAllocation]:
    return [TargetAllocation(instrument=code, weight=w) for code, w in weights.items()]


class FakeGateway(BrokerGateway):
    """Records every call in order; errors are scripted per instrument and consumed one per call"""

    def __init__(self, snapshots, limits=None, sell_errors=None, buy_errors=None, limit_errors=None):
        self.snapshots = list(snapshots)
        self.limits: Dict[str, OrderLimits] = limits or {}
        self.sell_errors = {k: list(v) for k, v in (sell_errors or {}).items()}
        self.buy_errors = {k: list(v) for k, v in (buy_errors or {}).items()}
        self.limit_errors = limit_errors or {}
        self.calls: List[tuple] = []

    async def fetch_snapshot(self, context):
        self.calls.append(('snapshot',))
        if not self.snapshots:
            raise BrokerConnectionError("no snapshot scripted")
        item = self.snapshots.pop(0) if len(self.snapshots) > 1 else self.snapshots[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def get_order_limits(self, context, instrument, currency):
        self.calls.append(('limits', instrument, currency))
        if instrument in self.limit_errors:
            raise self.limit_errors[instrument]
        return self.limits.get(instrument, OrderLimits(instrument=instrument))

    async def place_sell_order(self, context, instrument, quantity):
        self.calls.append(('sell', instrument, quantity))
        self._raise_scripted(self.sell_errors, instrument)
        return OrderResult(instrument=instrument, side='SELL', order_id=str(len(self.calls)), quantity=quantity)

    async def place_buy_order(self, context, instrument, value):
        self.calls.append(('buy', instrument, value))
        self._raise_scripted(self.buy_errors, instrument)
        return OrderResult(instrument=instrument, side='BUY', order_id=str(len(self.calls)), value=value)

    @property
    def order_calls(self) -> List[tuple]:
        return [c for c in self.calls if c[0] in ('sell', 'buy')]

    @staticmethod
    def _raise_scripted(errors, instrument):
        scripted = errors.get(instrument)
        if scripted:
            err = scripted.pop(0)
            if err is not None:
                raise err


class FakeResolver(TickerResolver):
    def __init__(self, mapping: Optional[Dict[str, Optional[str]]] = None, fail_on=()):
        self.mapping = mapping or {}
        self.fail_on = set(fail_on)
        self.queries: List[str] = []

    async def resolve(self, raw_symbol):
        self.queries.append(raw_symbol)
        if raw_symbol in self.fail_on:
            raise RuntimeError("search unavailable")
        return self.mapping.get(raw_symbol)


class FakeContextProvider(AccountContextProvider):
    def __init__(self, context: AccountContext = DEMO_CONTEXT, error: Optional[Exception] = None):
        self.context = context
        self.error = error

    async def get_context(self):
        if self.error:
            raise self.error
        return self.context


class RecordingSink(ProgressSink):
    def __init__(self):
        self.events: List[ProgressEvent] = []

    async def emit(self, message, severity='info', is_final=False):
        self.events.append(ProgressEvent(message=message, severity=severity, is_final=is_final))

    @property
    def messages(self) -> List[str]:
        return [e.message for e in self.events]


class CountingPacer(Pacer):
    """Zero-delay pacer that counts waits"""

    def __init__(self):
        super().__init__(0.0)
        self.waits = 0

    async def wait(self):
        self.waits += 1


@pytest.fixture
def config() -> AppConfig:
    return AppConfig()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def pacer() -> CountingPacer:
    return CountingPacer()


@pytest.fixture
def make_orchestrator(config, sink, pacer):
    def _make(gateway, resolver=None, context_provider=None, progress_sink=None):
        return RebalanceOrchestrator(
            gateway=gateway,
            resolver=resolver or FakeResolver(),
            context_provider=context_provider or FakeContextProvider(),
            progress_sink=progress_sink or sink,
            pacer=pacer,
            config=config,
        )
    return _make
