from .calculator import AllocationDiffEngine
from .pending import PendingAdjustmentTracker
from .sizing import OrderSizer, truncate
from .retry import (
    ErrorSignal,
    ErrorMatcher,
    SubstringMatcher,
    MaxBuyValueMatcher,
    ErrorClassifier,
    RetryPolicy,
)
from .pacer import Pacer
from .orchestrator import RebalanceOrchestrator
from .models import InstrumentDiff, DiffCalculationResult, RetryDecision, RunInfo
from .context import set_current_run, get_current_run, clear_current_run

__version__ = "1.0.0"

__all__ = [
    "AllocationDiffEngine",
    "PendingAdjustmentTracker",
    "OrderSizer",
    "truncate",
    "ErrorSignal",
    "ErrorMatcher",
    "SubstringMatcher",
    "MaxBuyValueMatcher",
    "ErrorClassifier",
    "RetryPolicy",
    "Pacer",
    "RebalanceOrchestrator",
    "InstrumentDiff",
    "DiffCalculationResult",
    "RetryDecision",
    "RunInfo",
    "set_current_run",
    "get_current_run",
    "clear_current_run",
    "__version__",
]
