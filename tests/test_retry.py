import pytest

from broker_gateway import BuyOrder, SellOrder
from rebalancer_config import RetryConfig
from rebalance_engine import (
    ErrorClassifier,
    MaxBuyValueMatcher,
    RetryPolicy,
    SubstringMatcher,
)


@pytest.fixture
def policy(config):
    return RetryPolicy(config=config)


def sell(quantity, attempt=0):
    return SellOrder(instrument="AAPL_US_EQ", quantity=quantity, original_value_difference=-300.0, attempt=attempt)


def buy(value, attempt=0):
    return BuyOrder(instrument="MSFT_US_EQ", value=value, original_value_difference=value, attempt=attempt)


def test_precision_error_truncates_sell_quantity(policy):
    decision = policy.decide(sell(5.4869), "Order rejected: invalid quantity precision")

    assert decision.should_retry
    assert decision.retry_order.quantity == 5.48
    assert decision.retry_order.attempt == 1
    assert decision.retry_order.original_value_difference == -300.0


def test_precision_retry_truncated_to_zero_is_terminal(policy):
    decision = policy.decide(sell(0.004), "Precision error")

    assert not decision.should_retry
    assert "zero" in decision.reason


def test_other_sell_errors_are_not_retried(policy):
    decision = policy.decide(sell(4.0), "Market is closed")

    assert not decision.should_retry


def test_max_buy_value_caps_retry(policy):
    decision = policy.decide(buy(200.0), "Value too high. You must buy at most 123.45 EUR")

    assert decision.should_retry
    assert decision.retry_order.value == 123.45
    assert decision.retry_order.attempt == 1


def test_max_buy_value_with_thousands_separator(policy):
    decision = policy.decide(buy(5000.0), "You must buy at most 1,234.56")

    assert decision.retry_order.value == 1234.56


def test_max_buy_value_below_minimum_is_terminal(policy):
    decision = policy.decide(buy(200.0), "You must buy at most 0.50")

    assert not decision.should_retry
    assert "below minimum" in decision.reason


def test_other_buy_errors_are_not_retried(policy):
    decision = policy.decide(buy(200.0), "Insufficient funds")

    assert not decision.should_retry


@pytest.mark.parametrize("order, message", [
    (sell(5.48, attempt=1), "invalid quantity precision"),
    (buy(123.45, attempt=1), "You must buy at most 100.00"),
])
def test_at_most_one_retry_per_order(policy, order, message):
    decision = policy.decide(order, message)

    assert not decision.should_retry
    assert decision.reason == "order was already retried once"


def test_matchers_are_swappable(config):
    classifier = ErrorClassifier([SubstringMatcher('precision', ["too many decimals"])])
    policy = RetryPolicy(classifier=classifier, config=config)

    assert policy.decide(sell(1.2345), "too many decimals").should_retry
    assert not policy.decide(sell(1.2345), "invalid quantity precision").should_retry


def test_unparseable_ceiling_is_terminal(config):
    classifier = ErrorClassifier([MaxBuyValueMatcher(r"limit is (\w+)")])
    policy = RetryPolicy(classifier=classifier, config=config)

    decision = policy.decide(buy(200.0), "limit is unknown")

    assert not decision.should_retry
    assert "could not parse" in decision.reason


def test_classifier_first_match_wins():
    classifier = ErrorClassifier.from_config(RetryConfig())

    assert classifier.classify("invalid quantity precision").kind == 'precision'
    assert classifier.classify("must buy at most 10").ceiling == 10.0
    assert classifier.classify("something else") is None
    assert classifier.classify(None) is None
