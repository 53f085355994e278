"""Ids of jobs cancelled while their dispatch was still in flight."""


class CancellationRegistry:
    """
    Records in-flight cancellations so late results can be dropped.

    Each mark is consumed by the first resolution that observes it.
    """

    def __init__(self):
        self._cancelled: set[str] = set()

    def mark_cancelled(self, job_id: str):
        self._cancelled.add(job_id)

    def is_cancelled(self, job_id: str) -> bool:
        """Return whether the job was cancelled, clearing the mark if so."""
        if job_id in self._cancelled:
            self._cancelled.discard(job_id)
            return True
        return False

    def discard(self, job_id: str):
        self._cancelled.discard(job_id)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._cancelled

    def __len__(self) -> int:
        return len(self._cancelled)
