"""Resolve the previous year's general income used for NHI estimates."""

from __future__ import annotations

import logging
from typing import Callable

from jptaxsim.backend.app.models import TaxInput

from .snapshot_service import SnapshotRecord

_LOGGER = logging.getLogger(__name__)

SnapshotLookup = Callable[[str], SnapshotRecord]


def resolve_previous_year(
    tax_input: TaxInput, lookup: SnapshotLookup | None = None
) -> int | None:
    """Return the previous-year total income for ``tax_input``.

    ``None`` means no figure is available and the engine uses the current
    year's own general income instead. ``lookup`` fetches a saved snapshot
    by id and raises :class:`KeyError` when it does not exist.
    """

    previous = tax_input.previous_year

    if previous.mode == "manual":
        if previous.manual is not None:
            return previous.manual.total_income
        return previous.total_income

    if previous.mode == "from_save":
        if not previous.snapshot_id or lookup is None:
            return None
        try:
            record = lookup(previous.snapshot_id)
        except KeyError:
            _LOGGER.warning(
                "Snapshot %s not found; using current year income instead",
                previous.snapshot_id,
            )
            return None
        return record.previous_year_total_income

    return None


__all__ = ["SnapshotLookup", "resolve_previous_year"]
