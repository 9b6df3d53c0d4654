"""
TASK DEDUPLICATOR

Keeps a task index from being processed twice at once, or again after it
completed, within one process lifetime. Nothing is persisted: a restart
starts with empty sets.
"""

from typing import Dict, FrozenSet, Set


class TaskDeduplicator:
    """
    In-flight / processed bookkeeping keyed by task index.
    """

    def __init__(self):
        self._in_flight: Set[int] = set()
        self._processed: Set[int] = set()

        # Stats
        self.stats = {
            'admitted': 0,
            'duplicates_rejected': 0,
            'committed': 0,
            'rolled_back': 0
        }

    def admit(self, task_index: int) -> bool:
        """
        Reserve a task for processing.
        Returns False if it is already in flight or already completed.
        """
        if task_index in self._processed or task_index in self._in_flight:
            self.stats['duplicates_rejected'] += 1
            return False

        self._in_flight.add(task_index)
        self.stats['admitted'] += 1
        return True

    def commit(self, task_index: int):
        """Task finished successfully: in-flight -> processed."""
        self._in_flight.discard(task_index)
        self._processed.add(task_index)
        self.stats['committed'] += 1

    def rollback(self, task_index: int):
        """Task failed: release it so a later scan can admit it again."""
        self._in_flight.discard(task_index)
        self.stats['rolled_back'] += 1

    def is_processed(self, task_index: int) -> bool:
        return task_index in self._processed

    def is_in_flight(self, task_index: int) -> bool:
        return task_index in self._in_flight

    @property
    def processed(self) -> FrozenSet[int]:
        return frozenset(self._processed)

    @property
    def in_flight(self) -> FrozenSet[int]:
        return frozenset(self._in_flight)

    def get_stats(self) -> Dict:
        return {
            **self.stats,
            'in_flight': len(self._in_flight),
            'processed': len(self._processed)
        }
