"""
Error Classifier
Labels caught failures and escalates runs of consecutive chain-access errors
"""
import asyncio
import logging
import time
from collections import deque
from enum import Enum
from typing import Dict, Optional

import aiohttp
import requests
from web3.exceptions import TimeExhausted

from .exceptions import ChainAccessError

logger = logging.getLogger(__name__)


class FailureKind(str, Enum):
    TRANSIENT_INFRASTRUCTURE = "transient_infrastructure"
    OTHER = "other"


TRANSIENT_ERRORS = (
    ChainAccessError,
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
    OSError,
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    aiohttp.ClientConnectionError,
    aiohttp.ServerTimeoutError,
    TimeExhausted,
)


class ErrorClassifier:
    """Classify failures and track the consecutive chain-access failure counter"""

    def __init__(self, threshold: int = 3):
        """
        Args:
            threshold: Consecutive failures before the loud diagnostic (default: 3).
                       Re-emitted at every further multiple of the threshold.
        """
        if threshold < 1:
            raise ValueError("threshold must be >= 1")
        self.threshold = threshold
        self.consecutive_failures = 0
        self.threshold_alerts = 0
        self.total_failures = 0
        self.error_history = deque(maxlen=100)  # Track last 100 errors
        self.last_success_at: Optional[float] = None

    def classify(self, exc: BaseException) -> FailureKind:
        seen = set()
        current: Optional[BaseException] = exc
        while current is not None and id(current) not in seen:
            if isinstance(current, TRANSIENT_ERRORS):
                return FailureKind.TRANSIENT_INFRASTRUCTURE
            seen.add(id(current))
            current = current.__cause__ or current.__context__
        return FailureKind.OTHER

    def record_failure(self, exc: BaseException) -> FailureKind:
        kind = self.classify(exc)
        self.consecutive_failures += 1
        self.total_failures += 1
        self.error_history.append({
            'kind': kind.value,
            'type': type(exc).__name__,
            'message': str(exc),
            'timestamp': time.time()
        })

        logger.warning(
            f"⚠️  Chain access failure ({kind.value}) "
            f"[{self.consecutive_failures} consecutive]: {exc}"
        )

        if self.consecutive_failures % self.threshold == 0:
            self.threshold_alerts += 1
            logger.error(
                f"🚨 {self.consecutive_failures} consecutive chain access failures - "
                f"RPC node may be down, watermark is not advancing"
            )
        return kind

    def record_success(self):
        if self.consecutive_failures:
            logger.info(f"✅ Chain access recovered after {self.consecutive_failures} failed tick(s)")
        self.consecutive_failures = 0
        self.last_success_at = time.time()

    def get_stats(self) -> Dict:
        return {
            'consecutive_failures': self.consecutive_failures,
            'total_failures': self.total_failures,
            'threshold_alerts': self.threshold_alerts,
            'last_success_at': self.last_success_at,
        }
