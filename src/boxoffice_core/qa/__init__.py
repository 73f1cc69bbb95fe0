"""QA module for performance snapshot batches.

Example:
    >>> from boxoffice_core.qa import run_snapshot_qa
    >>>
    >>> result = run_snapshot_qa(snapshots)
    >>> print(result.summary)
    >>> if result.has_errors:
    ...     print(result.total_violations)

"""

from boxoffice_core.qa.api import SnapshotQAResult, run_snapshot_qa
from boxoffice_core.qa.snapshot_checks import snapshots_to_frame

__all__ = ["SnapshotQAResult", "run_snapshot_qa", "snapshots_to_frame"]
