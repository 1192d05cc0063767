"""Retry policy for orders rejected by broker-side limits

Broker wording is matched by small pluggable matchers so the rules can be
swapped per broker and tested without the orchestrator.
"""

import re
from abc import ABC, abstractmethod
from typing import List, Literal, Optional
import logging
from pydantic import BaseModel
from broker_gateway import BuyOrder, RebalanceOrder, SellOrder
from rebalancer_config import AppConfig, RetryConfig, get_config
from .models import RetryDecision
from .sizing import truncate

SignalKind = Literal['precision', 'max_buy_value']


class ErrorSignal(BaseModel):
    """Recognised meaning of a broker rejection"""
    kind: SignalKind
    ceiling: Optional[float] = None


class ErrorMatcher(ABC):
    """Recognises one kind of broker rejection from its message"""

    @abstractmethod
    def match(self, message: str) -> Optional[ErrorSignal]:
        pass


class SubstringMatcher(ErrorMatcher):
    """Signal when the message contains any of the given substrings"""

    def __init__(self, kind: SignalKind, patterns: List[str]):
        self.kind = kind
        self.patterns = patterns

    def match(self, message: str) -> Optional[ErrorSignal]:
        if any(pattern in message for pattern in self.patterns):
            return ErrorSignal(kind=self.kind)
        return None


class MaxBuyValueMatcher(ErrorMatcher):
    """Extract the broker-suggested maximum buy value from the message"""

    def __init__(self, pattern: str):
        self.regex = re.compile(pattern)

    def match(self, message: str) -> Optional[ErrorSignal]:
        found = self.regex.search(message)
        if not found:
            return None
        try:
            ceiling = float(found.group(1).replace(',', ''))
        except (TypeError, ValueError):
            ceiling = None
        return ErrorSignal(kind='max_buy_value', ceiling=ceiling)


class ErrorClassifier:
    """First matching matcher wins"""

    def __init__(self, matchers: List[ErrorMatcher]):
        self.matchers = matchers

    @classmethod
    def from_config(cls, retry_config: RetryConfig) -> "ErrorClassifier":
        return cls([
            SubstringMatcher('precision', retry_config.precision_error_patterns),
            MaxBuyValueMatcher(retry_config.max_buy_value_pattern),
        ])

    def classify(self, message: str) -> Optional[ErrorSignal]:
        for matcher in self.matchers:
            signal = matcher.match(message or "")
            if signal:
                return signal
        return None


class RetryPolicy:
    """Derive at most one corrected retry per order"""

    def __init__(self, classifier: Optional[ErrorClassifier] = None,
                 config: Optional[AppConfig] = None, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.config = config or get_config()
        self.classifier = classifier or ErrorClassifier.from_config(self.config.retry)

    def decide(self, order: RebalanceOrder, error_message: str) -> RetryDecision:
        """Inspect a rejection and return the corrected order, if any"""
        if order.attempt >= 1:
            return RetryDecision(reason="order was already retried once")

        signal = self.classifier.classify(error_message)

        if isinstance(order, SellOrder):
            return self._decide_sell(order, signal)
        return self._decide_buy(order, signal)

    def _decide_sell(self, order: SellOrder, signal: Optional[ErrorSignal]) -> RetryDecision:
        if not signal or signal.kind != 'precision':
            return RetryDecision(reason="rejection is not a precision error")

        precision = self.config.trading.sell_retry_precision
        adjusted = truncate(order.quantity, precision)
        if adjusted <= 0:
            return RetryDecision(reason=f"adjusted quantity for {order.instrument} is zero")

        return RetryDecision(
            retry_order=order.model_copy(update={'quantity': adjusted, 'attempt': order.attempt + 1}),
            reason=f"precision error; truncating {order.quantity} to {adjusted}"
        )

    def _decide_buy(self, order: BuyOrder, signal: Optional[ErrorSignal]) -> RetryDecision:
        if not signal or signal.kind != 'max_buy_value':
            return RetryDecision(reason="rejection is not a maximum buy value error")

        if signal.ceiling is None:
            return RetryDecision(reason="could not parse the maximum buy value from the error")

        min_buy_value = self.config.trading.min_buy_value
        if signal.ceiling < min_buy_value:
            return RetryDecision(
                reason=f"adjusted buy value ({signal.ceiling:.2f}) is below minimum of {min_buy_value:.2f}"
            )

        return RetryDecision(
            retry_order=order.model_copy(update={'value': signal.ceiling, 'attempt': order.attempt + 1}),
            reason=f"broker limit hit; capping value at {signal.ceiling:.2f}"
        )
