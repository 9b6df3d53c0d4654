"""
Operator service wiring.
One long-lived object owns the watermark, the task sets and the counters.
"""
import logging
from typing import Dict, Optional

from eth_account import Account

from .chain import ChainClient
from .config import OperatorConfig
from .deduplicator import TaskDeduplicator
from .error_classifier import ErrorClassifier
from .events import SERVICE_MANAGER_ABI
from .exceptions import ChainAccessError
from .models import TickOutcome
from .poller import RangeChunkedLogPoller
from .scheduler import PollScheduler
from .scoring import HttpValuationPipeline, ScoringInvoker
from .submitter import ResponseSubmitter

logger = logging.getLogger(__name__)


class OperatorService:
    def __init__(
        self,
        poller: RangeChunkedLogPoller,
        scheduler: PollScheduler,
        pipeline: Optional[HttpValuationPipeline] = None,
        operator_address: str = ""
    ):
        self.poller = poller
        self.scheduler = scheduler
        self.pipeline = pipeline
        self.operator_address = operator_address

    @classmethod
    def from_config(cls, config: OperatorConfig) -> "OperatorService":
        config.validate()

        chain = ChainClient(config.rpc_url, request_timeout=config.rpc_timeout_seconds)
        account = Account.from_key(config.normalized_private_key)
        contract = chain.contract(config.service_manager_address, SERVICE_MANAGER_ABI)

        pipeline = HttpValuationPipeline(
            config.valuation_api_url,
            api_key=config.valuation_api_key,
            timeout=config.valuation_timeout_seconds
        )
        submitter = ResponseSubmitter(
            chain,
            contract,
            account,
            gas_limit=config.gas_limit,
            receipt_timeout=config.receipt_timeout_seconds
        )
        poller = RangeChunkedLogPoller(
            chain=chain,
            contract_address=config.service_manager_address,
            deduplicator=TaskDeduplicator(),
            scoring=ScoringInvoker(pipeline),
            submitter=submitter,
            error_classifier=ErrorClassifier(threshold=config.failure_threshold),
            chunk_size=config.chunk_size,
            watermark=config.initial_watermark
        )
        return cls(poller, PollScheduler(config.poll_interval_seconds), pipeline, account.address)

    async def connect(self) -> bool:
        chain = self.poller.chain
        if not chain.connect():
            return False
        try:
            await self.poller.initialize()
        except ChainAccessError as e:
            logger.error(f"❌ Could not read chain head: {e}")
            return False
        return True

    async def tick(self) -> TickOutcome:
        return await self.poller.poll_once()

    async def run_once(self) -> TickOutcome:
        return await self.poller.poll_once()

    async def run(self):
        await self.scheduler.run(self.tick)

    def stop(self):
        self.scheduler.stop()

    async def close(self):
        self.scheduler.stop()
        await self.scheduler.cancel_current()
        if self.pipeline is not None:
            await self.pipeline.close()

    def get_stats(self) -> Dict:
        return {
            'operator': self.operator_address,
            'watermark': self.poller.watermark,
            'scheduler': self.scheduler.get_stats(),
            'deduplicator': self.poller.deduplicator.get_stats(),
            'errors': self.poller.error_classifier.get_stats(),
        }
