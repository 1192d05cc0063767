from .base_client import (
    BrokerGateway,
    TickerResolver,
    AccountContextProvider,
    ProgressSink,
)
from .models import (
    # Core trading models
    TargetAllocation,
    AccountContext,
    # Market data models
    AccountSnapshot,
    Position,
    OutstandingValueOrder,
    OutstandingQuantityOrder,
    OrderLimits,
    # Order models
    SellOrder,
    BuyOrder,
    RebalanceOrder,
    OrderResult,
    # Progress models
    Severity,
    ProgressEvent,
    # Rebalancing result models
    FailedOrder,
    SkippedOrder,
    RebalanceResult,
    RebalancePreview,
)
from .exceptions import (
    BrokerConnectionError,
    BrokerAPIError,
    OrderRejectedError,
    SetupError,
    TickerResolutionError,
    SizingSkip,
)

__version__ = "1.0.0"

__all__ = [
    "BrokerGateway",
    "TickerResolver",
    "AccountContextProvider",
    "ProgressSink",
    "TargetAllocation",
    "AccountContext",
    "AccountSnapshot",
    "Position",
    "OutstandingValueOrder",
    "OutstandingQuantityOrder",
    "OrderLimits",
    "SellOrder",
    "BuyOrder",
    "RebalanceOrder",
    "OrderResult",
    "Severity",
    "ProgressEvent",
    "FailedOrder",
    "SkippedOrder",
    "RebalanceResult",
    "RebalancePreview",
    "BrokerConnectionError",
    "BrokerAPIError",
    "OrderRejectedError",
    "SetupError",
    "TickerResolutionError",
    "SizingSkip",
    "__version__",
]
