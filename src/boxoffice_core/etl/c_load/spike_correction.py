"""Repair isolated single-snapshot revenue spikes.

Weekly exports occasionally carry a data-entry error for one week only: a
performance's cumulative revenue jumps several-fold and falls straight back
the following week. Cumulative sales never legitimately behave that way, so
the spiked snapshot is replaced by the previous snapshot's values.

Rule, per performance ordered by snapshot date, for interior points only:

    rev[i-1] > 0  and  rev[i] > SPIKE_RATIO * rev[i-1]
                  and  rev[i+1] < DROP_RATIO * rev[i]

Comparisons use already-corrected values, so a run is repaired left to right.
Sustained growth (each week larger than the last) never matches.

Examples:
    Revenue [100, 100, 500, 110] -> the third snapshot becomes 100.
    Revenue [100, 150, 220, 300] -> unchanged.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from boxoffice_core.types import PerformanceSnapshot

logger = logging.getLogger(__name__)

SPIKE_RATIO = 3.0
DROP_RATIO = 0.5

CARRIED_FIELDS = (
    "single_tickets",
    "single_revenue",
    "subscription_tickets",
    "subscription_revenue",
    "total_tickets",
    "total_revenue",
)


@dataclass(frozen=True)
class SpikeCorrection:
    """Audit entry for one corrected snapshot."""

    snapshot_id: str
    performance_code: str
    before_revenue: float
    after_revenue: float
    previous_snapshot_id: str


@dataclass
class SpikeCorrectionResult:
    snapshots: list[PerformanceSnapshot]
    corrections: list[SpikeCorrection] = field(default_factory=list)


def _revenue(s: PerformanceSnapshot) -> float | None:
    return s.total_revenue


def is_spike(prev: float | None, curr: float | None, nxt: float | None) -> bool:
    """True if ``curr`` is an isolated spike between ``prev`` and ``nxt``."""
    if prev is None or curr is None or nxt is None:
        return False
    return prev > 0 and curr > SPIKE_RATIO * prev and nxt < DROP_RATIO * curr


def correct_spikes(snapshots: Iterable[PerformanceSnapshot]) -> SpikeCorrectionResult:
    """Replace isolated spikes with the preceding snapshot's values.

    Args:
        snapshots: Normalized snapshots for any number of performances.

    Returns:
        SpikeCorrectionResult with the snapshots (input order preserved,
        corrected ones replaced) and one SpikeCorrection per repair.

    """
    ordered = list(snapshots)
    by_code: dict[str, list[int]] = defaultdict(list)
    for idx, snap in enumerate(ordered):
        by_code[snap.performance_code].append(idx)

    corrections: list[SpikeCorrection] = []
    for code, positions in by_code.items():
        positions.sort(key=lambda p: ordered[p].snapshot_date)
        for k in range(1, len(positions) - 1):
            prev = ordered[positions[k - 1]]
            curr = ordered[positions[k]]
            nxt = ordered[positions[k + 1]]
            if not is_spike(_revenue(prev), _revenue(curr), _revenue(nxt)):
                continue

            before = curr.total_revenue
            note = (
                f"spike corrected: total_revenue {before:.2f} replaced by "
                f"{prev.total_revenue:.2f} from {prev.snapshot_id}"
            )
            fixed = replace(
                curr,
                correction_note=note,
                **{name: getattr(prev, name) for name in CARRIED_FIELDS},
            )
            ordered[positions[k]] = fixed
            logger.info(
                "Spike in %s at %s: revenue %.2f -> %.2f (snapshot %s)",
                code,
                curr.snapshot_date,
                before,
                fixed.total_revenue,
                curr.snapshot_id,
            )
            corrections.append(
                SpikeCorrection(
                    snapshot_id=curr.snapshot_id,
                    performance_code=code,
                    before_revenue=before,  # type: ignore[arg-type]
                    after_revenue=fixed.total_revenue,  # type: ignore[arg-type]
                    previous_snapshot_id=prev.snapshot_id,
                )
            )

    if corrections:
        logger.info("Corrected %d revenue spike(s)", len(corrections))
    return SpikeCorrectionResult(snapshots=ordered, corrections=corrections)
