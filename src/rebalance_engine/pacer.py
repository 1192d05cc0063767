"""Fixed delay between successive broker orders"""

import asyncio
import random
from typing import Optional
from rebalancer_config import AppConfig, get_config


class Pacer:
    """Sleep for a fixed interval plus optional random jitter"""

    def __init__(self, interval_seconds: float, jitter_seconds: float = 0.0):
        if interval_seconds < 0 or jitter_seconds < 0:
            raise ValueError("Pacing interval and jitter must not be negative")
        self.interval_seconds = interval_seconds
        self.jitter_seconds = jitter_seconds

    @classmethod
    def from_config(cls, config: Optional[AppConfig] = None) -> "Pacer":
        trading = (config or get_config()).trading
        return cls(trading.order_pacing_delay_seconds, trading.order_pacing_jitter_seconds)

    def next_delay(self) -> float:
        if self.jitter_seconds:
            return self.interval_seconds + random.uniform(0, self.jitter_seconds)
        return self.interval_seconds

    async def wait(self):
        delay = self.next_delay()
        if delay > 0:
            await asyncio.sleep(delay)
