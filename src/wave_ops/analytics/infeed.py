"""
SBL infeed coverage.

Joins pending SKU demand against the handling units (HUs) staged to feed
the SBL stations. An HU can be fed only when it has not been fed yet, is
included in the wave, is not blocked and sits in an active bin.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from wave_ops.config.settings import Thresholds
from wave_ops.domain.models import (
    HuRef,
    InfeedHuRow,
    InfeedRollup,
    InfeedSku,
    InfeedSkuRow,
    InfeedSummary,
    SkuRollup,
)

logger = logging.getLogger(__name__)

MAX_TOP_ENTRIES = 3


def is_hu_available(hu: InfeedHuRow) -> bool:
    return (
        hu.feed_status == "NOT_FED"
        and hu.inclusion_status == "INCLUDED"
        and not hu.blocked
        and hu.bin_status == "ACTIVE"
    )


def build_infeed_rollup(
    sku_rows: Sequence[InfeedSkuRow],
    hu_rows: Sequence[InfeedHuRow],
    thresholds: Thresholds | None = None,
) -> InfeedRollup | None:
    """Aggregate HU availability per pending SKU; None without both inputs."""
    if not sku_rows or not hu_rows:
        return None
    thresholds = thresholds or Thresholds()
    stale_after = thresholds.infeed_stale_minutes

    skus: dict[str, InfeedSku] = {}
    for row in sku_rows:
        if row.sku_code in skus:
            continue
        skus[row.sku_code] = InfeedSku(
            sku_code=row.sku_code,
            pending_qty=row.pending_qty,
            pending_lines=row.pending_lines,
            batch=row.batch,
            value_pending=row.value_pending,
        )

    for hu in hu_rows:
        sku = skus.get(hu.sku_code)
        if sku is None:
            continue

        if is_hu_available(hu):
            sku.hu_available_count += 1
            sku.available_qty += hu.qty
            if len(sku.top_hus) < MAX_TOP_ENTRIES:
                sku.top_hus.append(HuRef(hu.hu_code, hu.qty, hu.bin_code))

        if hu.blocked:
            sku.blocked_hu_count += 1
        if hu.age_minutes > stale_after:
            sku.stale_hu_count += 1
        if hu.bin_code and hu.bin_code not in sku.top_bins:
            sku.top_bins.append(hu.bin_code)

        if hu.scanned_sku_code and hu.scanned_sku_code != hu.sku_code:
            sku.dq_flags.sku_mismatch_on_hu = True
        if hu.bin_status != "ACTIVE":
            sku.dq_flags.inactive_bins = True
        if hu.blocked and sku.pending_qty > 0:
            sku.dq_flags.blocked_but_needed = True

    final: list[InfeedSku] = []
    for sku in skus.values():
        if sku.pending_qty > 0:
            sku.coverage_pct = (
                min(sku.available_qty, sku.pending_qty) / sku.pending_qty * 100
            )
        sku.top_bins = sku.top_bins[:MAX_TOP_ENTRIES]
        final.append(sku)

    final.sort(key=lambda s: s.coverage_pct)

    total_skus = len(final)
    avg_coverage = (
        sum(s.coverage_pct for s in final) / total_skus if total_skus else 0.0
    )
    summary = InfeedSummary(
        total_skus=total_skus,
        total_hus=len(hu_rows),
        avg_coverage_pct=round(avg_coverage, 2),
        low_coverage_skus=sum(
            1 for s in final if s.coverage_pct < thresholds.low_coverage_pct
        ),
        blocked_hus=sum(1 for h in hu_rows if h.blocked),
        stale_hus=sum(1 for h in hu_rows if h.age_minutes > stale_after),
    )
    logger.debug(
        "Infeed rollup: %d SKUs, %d HUs, avg coverage %.2f%%",
        summary.total_skus,
        summary.total_hus,
        summary.avg_coverage_pct,
    )
    return InfeedRollup(skus=final, hus=list(hu_rows), summary=summary)


def build_sku_rollup(infeed: InfeedRollup | None) -> SkuRollup:
    """Pending/completed SKU counts; all zeros without infeed data."""
    if infeed is None:
        return SkuRollup()
    skus = infeed.skus
    completed = sum(1 for s in skus if s.pending_qty == 0)
    return SkuRollup(
        total_skus=len(skus),
        pending_skus=sum(1 for s in skus if s.pending_qty > 0),
        completed_skus=completed,
        pending_lines=float(sum(s.pending_lines for s in skus)),
        completion_rate=completed / len(skus) if skus else 0.0,
    )
