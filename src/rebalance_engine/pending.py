"""Cash already in flight in unsettled orders"""

from typing import Dict, Optional
import logging
from broker_gateway import AccountSnapshot

class PendingAdjustmentTracker:
    """Fold outstanding orders into a per-instrument cash delta"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def build(self, snapshot: AccountSnapshot) -> Dict[str, float]:
        """
        Positive deltas for outstanding value (buy) orders, negative deltas for
        outstanding negative-quantity (sell) orders priced at the position's
        current price. Sells without a known price contribute nothing.
        """
        adjustments: Dict[str, float] = {}
        position_map = snapshot.position_map()

        for order in snapshot.outstanding_value_orders:
            adjustments[order.instrument] = adjustments.get(order.instrument, 0.0) + order.value

        for order in snapshot.outstanding_quantity_orders:
            if order.quantity >= 0:
                continue

            position = position_map.get(order.instrument)
            if not position or not position.current_price or position.current_price <= 0:
                self.logger.debug(
                    f"No price for pending sell of {order.instrument} ({order.quantity}); not adjusting"
                )
                continue

            delta = abs(order.quantity) * position.current_price
            adjustments[order.instrument] = adjustments.get(order.instrument, 0.0) - delta

        if adjustments:
            details = ", ".join(f"{k}: {v:+,.2f}" for k, v in sorted(adjustments.items()))
            self.logger.info(f"Pending cash adjustments: {details}")

        return adjustments
