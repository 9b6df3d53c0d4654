import unittest

from pydantic import ValidationError

from avs_operator.exceptions import InvalidTransitionError
from avs_operator.models import Task, TaskLifecycle, TickOutcome, TickStatus, ValuationResult


def make_task(**overrides):
    fields = dict(task_index=7, subject_reference="1234", creation_block=118, block_number=120)
    fields.update(overrides)
    return Task(**fields)


class TestTaskLifecycle(unittest.TestCase):

    def test_happy_path(self):
        task = make_task()
        task.advance(TaskLifecycle.VALUATING)
        task.advance(TaskLifecycle.SUBMITTING)
        task.advance(TaskLifecycle.COMPLETED)
        self.assertIs(task.lifecycle_state, TaskLifecycle.COMPLETED)

    def test_cannot_skip_valuation(self):
        task = make_task()
        with self.assertRaises(InvalidTransitionError):
            task.advance(TaskLifecycle.SUBMITTING)

    def test_fail_from_any_active_state(self):
        task = make_task()
        task.advance(TaskLifecycle.VALUATING)
        task.fail()
        self.assertIs(task.lifecycle_state, TaskLifecycle.FAILED)

    def test_fail_does_not_undo_completion(self):
        task = make_task()
        for state in (TaskLifecycle.VALUATING, TaskLifecycle.SUBMITTING, TaskLifecycle.COMPLETED):
            task.advance(state)
        task.fail()
        self.assertIs(task.lifecycle_state, TaskLifecycle.COMPLETED)

    def test_validation(self):
        with self.assertRaises(ValidationError):
            make_task(task_index=-1)
        with self.assertRaises(ValidationError):
            make_task(subject_reference="")


class TestValuationResult(unittest.TestCase):

    def test_alias_and_field_names(self):
        by_alias = ValuationResult(score=10, evidenceUri="ipfs://a")
        by_name = ValuationResult(score=10, evidence_uri="ipfs://a")
        self.assertEqual(by_alias, by_name)

    def test_bool_score_rejected(self):
        with self.assertRaises(ValidationError):
            ValuationResult(score=True, evidenceUri="ipfs://a")

    def test_nan_score_rejected(self):
        with self.assertRaises(ValidationError):
            ValuationResult(score=float('nan'), evidenceUri="ipfs://a")


class TestTickOutcome(unittest.TestCase):

    def test_advanced(self):
        self.assertTrue(TickOutcome(TickStatus.SUCCESS, 100, 250).advanced)
        self.assertFalse(TickOutcome(TickStatus.CHAIN_ACCESS_ERROR, 100, 100).advanced)
        self.assertFalse(TickOutcome(TickStatus.CHAIN_ACCESS_ERROR, None, None).advanced)

    def test_to_dict(self):
        data = TickOutcome(TickStatus.IDLE, 100, 100, head=100).to_dict()
        self.assertEqual(data['status'], 'idle')
        self.assertEqual(data['head'], 100)

    def test_summary(self):
        outcome = TickOutcome(TickStatus.SUCCESS, 100, 250, head=250, from_block=101, to_block=250,
                              chunks=2, tasks_completed=2)
        self.assertIn("blocks 101-250 in 2 chunk(s)", outcome.summary())


if __name__ == '__main__':
    unittest.main()
