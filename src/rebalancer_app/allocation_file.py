"""Target allocations from a ticker,weight CSV file"""

import csv
import logging
from pathlib import Path
from typing import List

from pydantic import ValidationError
from broker_gateway import TargetAllocation

logger = logging.getLogger(__name__)

TOTAL_TOLERANCE = 0.001


def parse_allocations(text: str) -> List[TargetAllocation]:
    """
    Parse `ticker,weight` rows; blank rows are ignored.

    Raises:
        ValueError: on a malformed row, a weight outside 0..1, or weights not
            summing to 1.0
    """
    allocations = []

    for row in csv.reader(text.splitlines()):
        if not row or not ''.join(row).strip():
            continue

        ticker = row[0].strip()
        raw_weight = row[1].strip() if len(row) > 1 else ''
        try:
            weight = float(raw_weight)
        except ValueError:
            weight = None

        if not ticker or weight is None:
            raise ValueError(f'Invalid row format: "{",".join(row)}"')

        try:
            allocations.append(TargetAllocation(instrument=ticker, weight=weight))
        except ValidationError as e:
            raise ValueError(f"Allocation for {ticker} must be between 0 and 1, got {weight}") from e

    total_allocation = sum(a.weight for a in allocations)
    if abs(total_allocation - 1.0) > TOTAL_TOLERANCE:
        raise ValueError(f"Total allocation is {total_allocation:.4f}, but must be 1.0.")

    return allocations


def load_allocations(path: str | Path) -> List[TargetAllocation]:
    """Read and validate an allocation CSV file"""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Allocation file not found: {path}")

    allocations = parse_allocations(path.read_text(encoding='utf-8-sig'))
    logger.info(f"Loaded {len(allocations)} target allocations from {path}")
    return allocations
