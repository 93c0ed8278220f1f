"""Distinct-value lists for the filter fields of a confirmed setting."""

import asyncio
import logging
import time
from typing import Sequence

from reflex_databoard.models import Filter
from reflex_databoard.services import Services

logger = logging.getLogger(__name__)


async def populate(services: Services, filters: Sequence[Filter]) -> dict[str, list[str]]:
    """Fetch the selectable values of every filter field.

    The per-field requests are read-only and independent, so they run
    concurrently.  The returned mapping follows the order of *filters*
    and is meant to replace the previous cache wholesale.
    """
    names = list(dict.fromkeys(f.index for f in filters))
    if not names:
        return {}

    t0 = time.perf_counter()
    results = await asyncio.gather(*(services.unique_values(name) for name in names))
    elapsed_ms = (time.perf_counter() - t0) * 1000
    logger.info(
        "[Databoard] value options: %d fields, %d values (%.1fms)",
        len(names),
        sum(len(values) for values in results),
        elapsed_ms,
    )
    return dict(zip(names, results))
