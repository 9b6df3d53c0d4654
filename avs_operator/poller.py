"""
Range-Chunked Log Poller

Per tick:
  1. Head check (cheap) - nothing to do if no new blocks
  2. Walk [watermark + 1, head] in chunk_size windows, ascending
  3. Per log, in (block, logIndex) order: dedup gate -> valuation -> response
  4. Advance the watermark only after the whole span was walked

A chain access failure aborts the tick and leaves the watermark where it
was, so the same range is retried next tick. Per-task failures are
isolated and never stop the walk.
"""
import asyncio
import logging
from typing import Any, Iterator, Mapping, Optional, Tuple

from .chain import ChainClient
from .deduplicator import TaskDeduplicator
from .error_classifier import ErrorClassifier, FailureKind
from .events import NEW_TASK_TOPIC, decode_task_log, log_sort_key
from .exceptions import ChainAccessError, TaskDecodeError
from .models import Task, TaskLifecycle, TickOutcome, TickStatus
from .scoring import ScoringInvoker
from .submitter import ResponseSubmitter

logger = logging.getLogger(__name__)

# Upstream log provider rejects wider eth_getLogs ranges
CHUNK_SIZE = 100


def chunk_ranges(start: int, end: int, size: int = CHUNK_SIZE) -> Iterator[Tuple[int, int]]:
    """Inclusive [from, to] windows covering start..end, at most `size` blocks each."""
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    from_block = start
    while from_block <= end:
        to_block = min(from_block + size - 1, end)
        yield from_block, to_block
        from_block = to_block + 1


class RangeChunkedLogPoller:
    """Owns the watermark; the deduplicator owns the task sets."""

    def __init__(
        self,
        chain: ChainClient,
        contract_address: str,
        deduplicator: TaskDeduplicator,
        scoring: ScoringInvoker,
        submitter: ResponseSubmitter,
        error_classifier: ErrorClassifier,
        chunk_size: int = CHUNK_SIZE,
        watermark: Optional[int] = None
    ):
        if not 1 <= chunk_size <= CHUNK_SIZE:
            raise ValueError(f"chunk_size must be between 1 and {CHUNK_SIZE}")
        self.chain = chain
        self.contract_address = contract_address
        self.deduplicator = deduplicator
        self.scoring = scoring
        self.submitter = submitter
        self.error_classifier = error_classifier
        self.chunk_size = chunk_size
        self.watermark = watermark

    @property
    def initialized(self) -> bool:
        return self.watermark is not None

    async def initialize(self) -> int:
        """
        Start from the current head when no watermark was supplied.
        Events before it are never scanned in this process lifetime.
        """
        if self.watermark is None:
            self.watermark = await self.chain.get_block_number()
            logger.info(f"🔗 Watermark initialized at current head {self.watermark}")
        else:
            logger.info(f"🔗 Watermark initialized at block {self.watermark}")
        return self.watermark

    async def poll_once(self) -> TickOutcome:
        if self.watermark is None:
            try:
                await self.initialize()
            except ChainAccessError as e:
                self.error_classifier.record_failure(e)
                return TickOutcome(TickStatus.CHAIN_ACCESS_ERROR, None, None, error=str(e))

        start_watermark = self.watermark
        outcome = TickOutcome(TickStatus.SUCCESS, start_watermark, start_watermark)

        try:
            head = await self.chain.get_block_number()
            outcome.head = head

            if head <= start_watermark:
                outcome.status = TickStatus.IDLE
                self.error_classifier.record_success()
                logger.debug(f"⏸️  No new blocks (head: {head}, watermark: {start_watermark})")
                return outcome

            outcome.from_block = start_watermark + 1
            outcome.to_block = head

            for from_block, to_block in chunk_ranges(start_watermark + 1, head, self.chunk_size):
                logs = await self.chain.get_logs(
                    self.contract_address, [NEW_TASK_TOPIC], from_block, to_block
                )
                outcome.chunks += 1
                if logs:
                    logger.info(f"📋 Found {len(logs)} task log(s) in blocks {from_block}-{to_block}")

                for log in sorted(logs, key=log_sort_key):
                    await asyncio.sleep(0)  # Yield
                    outcome.tasks_seen += 1
                    result = await self._process_log(log)
                    if result is TaskLifecycle.COMPLETED:
                        outcome.tasks_completed += 1
                    elif result is TaskLifecycle.FAILED:
                        outcome.tasks_failed += 1
                    else:
                        outcome.tasks_skipped += 1

        except ChainAccessError as e:
            self.error_classifier.record_failure(e)
            outcome.status = TickStatus.CHAIN_ACCESS_ERROR
            outcome.error = str(e)
            logger.warning(f"⚠️  Tick aborted, blocks {start_watermark + 1}+ will be retried: {e}")
            return outcome
        except Exception as e:
            # Unexpected poller-level failure: same contract as a chain error, watermark stays
            if self.error_classifier.classify(e) is FailureKind.TRANSIENT_INFRASTRUCTURE:
                self.error_classifier.record_failure(e)
            outcome.status = TickStatus.ERROR
            outcome.error = f"{type(e).__name__}: {e}"
            logger.exception(f"❌ Tick failed unexpectedly, watermark stays {start_watermark}")
            return outcome

        self.watermark = head
        outcome.watermark_after = head
        self.error_classifier.record_success()
        logger.info(f"✅ Tick complete - {outcome.summary()}")
        return outcome

    async def _process_log(self, log: Mapping[str, Any]) -> Optional[TaskLifecycle]:
        """
        Route one log through dedup -> valuation -> submission.
        Returns COMPLETED, FAILED, or None when the task was skipped.
        """
        try:
            task = decode_task_log(log)
        except TaskDecodeError as e:
            logger.error(f"❌ Dropping undecodable log in block {log.get('blockNumber')}: {e}")
            return TaskLifecycle.FAILED

        if not self.deduplicator.admit(task.task_index):
            logger.debug(f"Task #{task.task_index} already in flight or processed - skipping")
            return None

        logger.info(f"🆕 New task detected: Task #{task.task_index} (subject {task.subject_reference}, block {task.block_number})")

        try:
            await self._run_task(task)
        except asyncio.CancelledError:
            self.deduplicator.rollback(task.task_index)
            raise
        except Exception as e:
            task.fail()
            self.deduplicator.rollback(task.task_index)
            kind = self.error_classifier.classify(e)
            logger.error(f"❌ Task #{task.task_index} failed ({type(e).__name__}, {kind.value}): {e}")
            return TaskLifecycle.FAILED

        self.deduplicator.commit(task.task_index)
        return TaskLifecycle.COMPLETED

    async def _run_task(self, task: Task):
        task.advance(TaskLifecycle.VALUATING)
        task.valuation_result = await self.scoring.invoke(task.subject_reference)

        task.advance(TaskLifecycle.SUBMITTING)
        task.response_tx_handle = await self.submitter.submit(task, task.valuation_result)

        task.advance(TaskLifecycle.COMPLETED)
