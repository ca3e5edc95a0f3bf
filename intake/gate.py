"""
Verification barrier: fan-in over the pending verification requests of a
case.
"""

from typing import Dict, Iterable, List, Set

from intake.domain import VerificationResolution


class VerificationBarrier:
    """
    Tracks which pending verification ids have been approved or rejected.

    The barrier is settled once every pending id is in one of the two sets.
    Resolutions for ids outside the pending set are kept (they are still
    persisted) but do not count towards settlement. A later resolution for
    the same id replaces the earlier one.
    """

    def __init__(self, pending_ids: Iterable[str] = ()) -> None:
        self.pending_ids: Set[str] = set(pending_ids)
        self.approved: Set[str] = set()
        self.rejected: Set[str] = set()
        self._resolutions: Dict[str, VerificationResolution] = {}

    def reset(self, pending_ids: Iterable[str]) -> None:
        """Set the ids to wait for, keeping resolutions already received."""
        self.pending_ids = set(pending_ids)

    def record(self, resolution: VerificationResolution) -> None:
        vid = resolution.verification_id
        self._resolutions[vid] = resolution
        if resolution.approved:
            self.rejected.discard(vid)
            self.approved.add(vid)
        else:
            self.approved.discard(vid)
            self.rejected.add(vid)

    @property
    def outstanding(self) -> Set[str]:
        return self.pending_ids - self.approved - self.rejected

    @property
    def settled(self) -> bool:
        return not self.outstanding

    def resolutions(self) -> List[VerificationResolution]:
        return list(self._resolutions.values())
