"""
Operator error hierarchy.

Chain access failures abort a poll tick; every other OperatorError is
isolated to the task that raised it.
"""
from typing import Optional


class OperatorError(Exception):
    """Base class for all operator failures"""


class ChainAccessError(OperatorError):
    """RPC node could not be reached (head or log query failed)"""


class TaskDecodeError(OperatorError):
    """Log payload did not match the NewTaskCreated schema"""


class ValuationError(OperatorError):
    """Valuation pipeline failed or returned an unusable payload"""

    def __init__(self, message: str, subject_reference: Optional[str] = None):
        super().__init__(message)
        self.subject_reference = subject_reference


class SubmissionError(OperatorError):
    """Response transaction could not be signed, sent or confirmed"""

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class ConfigError(OperatorError):
    """Invalid or incomplete operator configuration"""


class InvalidTransitionError(OperatorError):
    """Task lifecycle moved along an edge that does not exist"""
