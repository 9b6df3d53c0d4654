"""
EVM chain access for the operator.
Blocking web3 calls run in a worker thread so the event loop stays responsive.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from hexbytes import HexBytes
from web3 import Web3

from .exceptions import ChainAccessError

logger = logging.getLogger(__name__)


class ChainClient:
    """Thin async facade over a synchronous Web3 HTTP connection"""

    def __init__(self, rpc_url: str, request_timeout: Optional[float] = 30.0, w3: Optional[Web3] = None):
        self.rpc_url = rpc_url
        if w3 is None:
            request_kwargs = {'timeout': request_timeout} if request_timeout else {}
            w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs=request_kwargs))
        self.w3 = w3
        self._chain_id: Optional[int] = None

    def connect(self) -> bool:
        """Verify connectivity. Returns False instead of raising."""
        try:
            if not self.w3.is_connected():
                logger.error(f"❌ Could not connect to RPC {self.rpc_url}")
                return False
            self._chain_id = self.w3.eth.chain_id
            logger.info(f"✅ Connected to chain {self._chain_id} via {self.rpc_url}")
            return True
        except Exception as e:
            logger.error(f"❌ RPC connection error: {e}")
            return False

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = self.w3.eth.chain_id
        return self._chain_id

    def contract(self, address: str, abi: Sequence[Dict[str, Any]]):
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    # ---- reads: failures here are chain-access errors ----

    async def get_block_number(self) -> int:
        try:
            return int(await asyncio.to_thread(lambda: self.w3.eth.block_number))
        except Exception as e:
            raise ChainAccessError(f"eth_blockNumber failed: {e}") from e

    async def get_logs(self, address: str, topics: Sequence[Any], from_block: int, to_block: int) -> List[Dict[str, Any]]:
        log_filter = {
            'address': Web3.to_checksum_address(address),
            'fromBlock': from_block,
            'toBlock': to_block,
            'topics': [HexBytes(t).to_0x_hex() if not isinstance(t, str) else t for t in topics],
        }
        try:
            logs = await asyncio.to_thread(self.w3.eth.get_logs, log_filter)
        except Exception as e:
            raise ChainAccessError(f"eth_getLogs [{from_block}, {to_block}] failed: {e}") from e
        return [dict(log) for log in logs]

    # ---- writes: callers decide how to classify failures ----

    async def get_pending_nonce(self, address: str) -> int:
        return await asyncio.to_thread(self.w3.eth.get_transaction_count, address, 'pending')

    async def send_raw_transaction(self, raw_tx: bytes) -> str:
        tx_hash = await asyncio.to_thread(self.w3.eth.send_raw_transaction, raw_tx)
        return HexBytes(tx_hash).to_0x_hex()

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> Dict[str, Any]:
        receipt = await asyncio.to_thread(
            self.w3.eth.wait_for_transaction_receipt, tx_hash, timeout
        )
        return dict(receipt)
