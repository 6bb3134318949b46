"""Ledger data validation utilities.

The engine fails fast on the first bad record. Collaborators that want to
show every problem at once (for example before importing a CSV file) use
these helpers to collect them instead.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Tuple

from data.models.portfolio import Ledger
from financial.errors import InvalidInputError

logger = logging.getLogger(__name__)


def check_duplicate_ids(records: Iterable, strict: bool = True) -> Tuple[bool, Dict[str, int]]:
    """
    Check for records that share an id.

    Args:
        records: Trades or cash flows
        strict: If True, raise error on duplicates. If False, just warn.

    Returns:
        Tuple of (has_duplicates, count_by_duplicated_id)

    Raises:
        ValueError: If duplicates found and strict=True
    """
    counts: Dict[str, int] = defaultdict(int)
    for record in records:
        if record.id:
            counts[record.id] += 1

    duplicates = {record_id: count for record_id, count in counts.items() if count > 1}

    if duplicates:
        for record_id, count in duplicates.items():
            logger.error(f"Duplicate record id {record_id!r} ({count} records)")
        if strict:
            raise ValueError(f"Found {len(duplicates)} duplicated record ids")
        logger.warning("Continuing despite duplicate record ids")

    return bool(duplicates), duplicates


def validate_ledger(ledger: Ledger) -> Tuple[bool, List[str]]:
    """
    Validate every trade and cash flow in a ledger.

    Args:
        ledger: Ledger to check

    Returns:
        Tuple of (is_valid, error messages); each message names the record id
    """
    errors = []

    for trade in ledger.trades:
        try:
            trade.validate()
        except InvalidInputError as e:
            errors.append(f"Trade {trade.id or '?'}: {e}")

    for cash_flow in ledger.cash_flows:
        try:
            cash_flow.validate()
        except InvalidInputError as e:
            errors.append(f"Cash flow {cash_flow.id or '?'}: {e}")

    for label, records in (('trade', ledger.trades), ('cash flow', ledger.cash_flows)):
        _, duplicates = check_duplicate_ids(records, strict=False)
        errors.extend(f"Duplicate {label} id: {record_id}" for record_id in duplicates)

    if errors:
        logger.warning(f"Ledger validation found {len(errors)} problems")
    return not errors, errors
