from typing import List, Literal, Optional
from pydantic import BaseModel
from broker_gateway import RebalanceOrder

DiffAction = Literal['sell', 'buy', 'none']

class InstrumentDiff(BaseModel):
    """Signed value gap between target and effective holding for one instrument"""
    instrument: str
    effective_value: float
    target_value: float
    difference: float
    target_weight: float = 0.0
    has_position: bool = False
    action: DiffAction = 'none'

class DiffCalculationResult(BaseModel):
    """All diffs of one phase, split by classification"""
    diffs: List[InstrumentDiff]

    @property
    def sells(self) -> List[InstrumentDiff]:
        return [d for d in self.diffs if d.action == 'sell']

    @property
    def buys(self) -> List[InstrumentDiff]:
        return [d for d in self.diffs if d.action == 'buy']

class RetryDecision(BaseModel):
    """Outcome of inspecting a rejected order"""
    retry_order: Optional[RebalanceOrder] = None
    reason: str

    @property
    def should_retry(self) -> bool:
        return self.retry_order is not None

class RunInfo(BaseModel):
    """Identifiers of the rebalance run in progress, attached to log records"""
    run_id: str
    account_id: Optional[str] = None
    trading_mode: Optional[str] = None
