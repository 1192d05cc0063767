from typing import Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field

# Core trading models
class TargetAllocation(BaseModel):
    """Target weight for one instrument"""
    instrument: str
    weight: float = Field(ge=0.0, le=1.0)

class AccountContext(BaseModel):
    """Authenticated account context passed explicitly into every broker call"""
    account_id: str
    trading_mode: Literal['LIVE', 'DEMO']
    session_token: str
    device_id: str

# Market data models
class Position(BaseModel):
    """Currently held instrument"""
    instrument: str
    quantity: float
    market_value: float
    current_price: Optional[float] = None

class OutstandingValueOrder(BaseModel):
    """Unsettled order specified by cash value (a pending buy)"""
    instrument: str
    value: float

class OutstandingQuantityOrder(BaseModel):
    """Unsettled order specified by signed quantity (negative for sells)"""
    instrument: str
    quantity: float

class AccountSnapshot(BaseModel):
    """Account state fetched at the start of a phase"""
    account_id: str
    total_equity: float
    positions: List[Position] = Field(default_factory=list)
    outstanding_value_orders: List[OutstandingValueOrder] = Field(default_factory=list)
    outstanding_quantity_orders: List[OutstandingQuantityOrder] = Field(default_factory=list)

    def position_map(self) -> Dict[str, Position]:
        return {pos.instrument: pos for pos in self.positions}

class OrderLimits(BaseModel):
    """Broker-imposed limits for value/quantity orders on one instrument"""
    instrument: str
    min_sell_value: float = 0.0
    max_sell_quantity: Optional[float] = None
    min_buy_value: Optional[float] = None
    max_buy_value: Optional[float] = None

# Order models
class SellOrder(BaseModel):
    """Market sell specified by quantity"""
    side: Literal['SELL'] = 'SELL'
    instrument: str
    quantity: float
    original_value_difference: float
    is_liquidation: bool = False
    attempt: int = 0

class BuyOrder(BaseModel):
    """Market buy specified by cash value; the broker converts it to quantity"""
    side: Literal['BUY'] = 'BUY'
    instrument: str
    value: float
    original_value_difference: float
    attempt: int = 0

RebalanceOrder = Union[SellOrder, BuyOrder]

class OrderResult(BaseModel):
    """Standardized order placement result"""
    instrument: str
    side: Literal['SELL', 'BUY']
    order_id: Optional[str] = None
    status: Optional[str] = None
    quantity: Optional[float] = None
    value: Optional[float] = None

# Progress models
Severity = Literal['info', 'notice', 'success', 'warning', 'error']

class ProgressEvent(BaseModel):
    """One structured progress message"""
    message: str
    severity: Severity = 'info'
    is_final: bool = False

# Rebalancing result models
class FailedOrder(BaseModel):
    """Order that was rejected or could not be submitted"""
    order: RebalanceOrder = Field(discriminator='side')
    error: str

class SkippedOrder(BaseModel):
    """Candidate that was sized away without contacting the order endpoint"""
    instrument: str
    side: Literal['SELL', 'BUY']
    reason: str

class RebalanceResult(BaseModel):
    """Result of rebalance operation"""
    orders: List[RebalanceOrder] = Field(default_factory=list)
    failed_orders: List[FailedOrder] = Field(default_factory=list)
    skipped: List[SkippedOrder] = Field(default_factory=list)
    dropped_tickers: List[str] = Field(default_factory=list)
    total_equity: Optional[float] = None
    success: bool = False
    error: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

class RebalancePreview(BaseModel):
    """Result of rebalance calculation (preview)"""
    proposed_sells: List[SellOrder] = Field(default_factory=list)
    proposed_buys: List[BuyOrder] = Field(default_factory=list)
    skipped: List[SkippedOrder] = Field(default_factory=list)
    dropped_tickers: List[str] = Field(default_factory=list)
    total_equity: float
    success: bool
    warnings: List[str] = Field(default_factory=list)
