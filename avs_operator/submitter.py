"""
Response Submitter
Orchestrates the response flow: Message -> Sign -> Build -> Broadcast -> Confirm
"""

import asyncio
import logging
from typing import Optional

from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3 import Web3

from .chain import ChainClient
from .exceptions import SubmissionError
from .models import Task, ValuationResult

logger = logging.getLogger(__name__)

RESPONSE_MESSAGE_TEMPLATE = "Respond domain task {task_index}"
DEFAULT_GAS_LIMIT = 1_500_000


class ResponseSubmitter:
    def __init__(
        self,
        chain: ChainClient,
        contract,
        account: LocalAccount,
        gas_limit: int = DEFAULT_GAS_LIMIT,
        receipt_timeout: float = 120.0
    ):
        self.chain = chain
        self.contract = contract
        self.account = account
        self.gas_limit = gas_limit
        self.receipt_timeout = receipt_timeout

    @staticmethod
    def response_message(task_index: int) -> str:
        return RESPONSE_MESSAGE_TEMPLATE.format(task_index=task_index)

    @classmethod
    def message_hash(cls, task_index: int) -> HexBytes:
        return HexBytes(Web3.solidity_keccak(["string"], [cls.response_message(task_index)]))

    def sign_task(self, task_index: int) -> bytes:
        """Raw ECDSA signature over the message hash (no EIP-191 prefix)."""
        signed = self.account.unsafe_sign_hash(self.message_hash(task_index))
        return bytes(signed.signature)

    def _build_transaction(self, task: Task, valuation: ValuationResult, signature: bytes, nonce: int) -> dict:
        call = self.contract.functions.respondToTask(
            (task.token_id, task.creation_block),
            valuation.score,
            valuation.evidence_uri,
            task.task_index,
            signature
        )
        return call.build_transaction({
            'from': self.account.address,
            'gas': self.gas_limit,
            'nonce': nonce,
        })

    async def submit(self, task: Task, valuation: ValuationResult) -> str:
        """
        Send respondToTask and wait for inclusion.
        Returns the tx hash; raises SubmissionError on any failure.
        """
        tx_hash: Optional[str] = None
        try:
            signature = self.sign_task(task.task_index)
            logger.info(f"✍️  Signing and responding to task #{task.task_index}")

            nonce = await self.chain.get_pending_nonce(self.account.address)
            tx = await asyncio.to_thread(self._build_transaction, task, valuation, signature, nonce)
            signed_tx = self.account.sign_transaction(tx)

            tx_hash = await self.chain.send_raw_transaction(signed_tx.raw_transaction)
            logger.info(f"📤 Response for task #{task.task_index} broadcast: {tx_hash}")

            receipt = await self.chain.wait_for_receipt(tx_hash, self.receipt_timeout)
        except SubmissionError:
            raise
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise SubmissionError(f"Response for task #{task.task_index} failed: {e}", tx_hash) from e

        if receipt.get('status') != 1:
            raise SubmissionError(
                f"Response for task #{task.task_index} reverted in block {receipt.get('blockNumber')}",
                tx_hash
            )

        logger.info(f"✅ Responded to task #{task.task_index} (block {receipt.get('blockNumber')}, gas {receipt.get('gasUsed')})")
        return tx_hash
