"""
Domain task operator: watches NewTaskCreated events, values each task and
reports a signed response on-chain.
"""
from .chain import ChainClient
from .config import OperatorConfig
from .deduplicator import TaskDeduplicator
from .error_classifier import ErrorClassifier, FailureKind
from .exceptions import (
    ChainAccessError,
    ConfigError,
    InvalidTransitionError,
    OperatorError,
    SubmissionError,
    TaskDecodeError,
    ValuationError,
)
from .models import Task, TaskLifecycle, TickOutcome, TickStatus, ValuationResult
from .poller import CHUNK_SIZE, RangeChunkedLogPoller, chunk_ranges
from .scheduler import PollScheduler
from .scoring import HttpValuationPipeline, ScoringInvoker
from .service import OperatorService
from .submitter import ResponseSubmitter

__all__ = [
    'CHUNK_SIZE',
    'ChainAccessError',
    'ChainClient',
    'ConfigError',
    'ErrorClassifier',
    'FailureKind',
    'HttpValuationPipeline',
    'InvalidTransitionError',
    'OperatorConfig',
    'OperatorError',
    'OperatorService',
    'PollScheduler',
    'RangeChunkedLogPoller',
    'ResponseSubmitter',
    'ScoringInvoker',
    'SubmissionError',
    'Task',
    'TaskDecodeError',
    'TaskDeduplicator',
    'TaskLifecycle',
    'TickOutcome',
    'TickStatus',
    'ValuationError',
    'ValuationResult',
    'chunk_ranges',
]
