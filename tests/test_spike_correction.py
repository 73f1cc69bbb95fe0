"""Tests for isolated revenue spike correction."""

from __future__ import annotations

from datetime import date, timedelta

from boxoffice_core.etl.c_load.spike_correction import correct_spikes, is_spike


def _series(make_snapshot, revenues, code="TEST-CONCERT-2024-11-01"):
    start = date(2024, 10, 7)
    return [
        make_snapshot(code=code, snapshot_date=start + timedelta(weeks=i), total_revenue=rev)
        for i, rev in enumerate(revenues)
    ]


def test_is_spike_rule() -> None:
    """Jump above 3x the previous value and fall below half on the next."""
    assert is_spike(100.0, 500.0, 110.0)
    assert not is_spike(100.0, 250.0, 110.0)
    assert not is_spike(100.0, 500.0, 300.0)
    assert not is_spike(0.0, 500.0, 10.0)
    assert not is_spike(None, 500.0, 10.0)


def test_isolated_spike_is_replaced(make_snapshot) -> None:
    """[100, 100, 500, 110] -> the third snapshot takes the second's values."""
    snaps = _series(make_snapshot, [100.0, 100.0, 500.0, 110.0])
    result = correct_spikes(snaps)

    revenues = [s.total_revenue for s in result.snapshots]
    assert revenues == [100.0, 100.0, 100.0, 110.0]
    fixed = result.snapshots[2]
    assert fixed.snapshot_id == snaps[2].snapshot_id
    assert fixed.snapshot_date == snaps[2].snapshot_date
    assert fixed.single_revenue == snaps[1].single_revenue
    assert "spike corrected" in fixed.correction_note

    assert len(result.corrections) == 1
    correction = result.corrections[0]
    assert correction.before_revenue == 500.0
    assert correction.after_revenue == 100.0
    assert correction.previous_snapshot_id == snaps[1].snapshot_id


def test_sustained_growth_is_untouched(make_snapshot) -> None:
    """[100, 150, 220, 300] is normal cumulative growth."""
    snaps = _series(make_snapshot, [100.0, 150.0, 220.0, 300.0])
    result = correct_spikes(snaps)

    assert result.snapshots == snaps
    assert result.corrections == []


def test_endpoints_are_never_corrected(make_snapshot) -> None:
    """The first and last snapshots have no neighbour on one side."""
    snaps = _series(make_snapshot, [100.0, 900.0])
    assert correct_spikes(snaps).corrections == []


def test_performances_are_independent_and_order_is_kept(make_snapshot) -> None:
    """Input order survives; only the spiked performance changes."""
    a = _series(make_snapshot, [100.0, 100.0, 500.0, 110.0], code="A-2024-11-01")
    b = _series(make_snapshot, [50.0, 60.0, 70.0, 80.0], code="B-2024-11-01")
    mixed = [b[3], a[2], b[0], a[0], a[3], b[1], a[1], b[2]]

    result = correct_spikes(mixed)

    assert [s.snapshot_id for s in result.snapshots] == [s.snapshot_id for s in mixed]
    assert result.snapshots[1].total_revenue == 100.0
    assert [c.performance_code for c in result.corrections] == ["A-2024-11-01"]


def test_missing_revenue_is_not_a_spike(make_snapshot) -> None:
    """Snapshots without revenue never trigger a correction."""
    snaps = _series(make_snapshot, [100.0, None, 500.0, 110.0])
    assert correct_spikes(snaps).corrections == []
