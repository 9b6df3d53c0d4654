"""
Service manager ABI and NewTaskCreated log decoding
"""
import logging
from typing import Any, Dict, List, Mapping

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from hexbytes import HexBytes
from pydantic import ValidationError
from web3 import Web3

from .exceptions import TaskDecodeError
from .models import Task

logger = logging.getLogger(__name__)


TASK_STRUCT = {
    "components": [
        {"name": "tokenId", "type": "uint256"},
        {"name": "taskCreatedBlock", "type": "uint32"}
    ],
    "name": "task",
    "type": "tuple"
}

# Minimal ABI: only what the operator and the task tool touch
SERVICE_MANAGER_ABI = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "taskIndex", "type": "uint32"},
            {**TASK_STRUCT, "indexed": False}
        ],
        "name": "NewTaskCreated",
        "type": "event"
    },
    {
        "inputs": [
            TASK_STRUCT,
            {"name": "score", "type": "uint256"},
            {"name": "evidenceUri", "type": "string"},
            {"name": "referenceTaskIndex", "type": "uint32"},
            {"name": "signature", "type": "bytes"}
        ],
        "name": "respondToTask",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "name": "createNewTask",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "latestTaskNum",
        "outputs": [{"name": "", "type": "uint32"}],
        "stateMutability": "view",
        "type": "function"
    }
]


def _canonical_type(param: Mapping[str, Any]) -> str:
    if param["type"].startswith("tuple"):
        inner = ",".join(_canonical_type(c) for c in param["components"])
        return f"({inner}){param['type'][len('tuple'):]}"
    return param["type"]


def event_signature(event_abi: Mapping[str, Any]) -> str:
    """NewTaskCreated(uint32,(uint256,uint32))"""
    types = ",".join(_canonical_type(p) for p in event_abi["inputs"])
    return f"{event_abi['name']}({types})"


def _event_abi(name: str) -> Dict[str, Any]:
    for entry in SERVICE_MANAGER_ABI:
        if entry["type"] == "event" and entry["name"] == name:
            return entry
    raise KeyError(name)


NEW_TASK_EVENT_ABI = _event_abi("NewTaskCreated")
NEW_TASK_EVENT_SIGNATURE = event_signature(NEW_TASK_EVENT_ABI)
# Must change in lockstep with the contract's event parameter list
NEW_TASK_TOPIC = HexBytes(Web3.keccak(text=NEW_TASK_EVENT_SIGNATURE))

_DATA_TYPES: List[str] = [
    _canonical_type(p) for p in NEW_TASK_EVENT_ABI["inputs"] if not p.get("indexed")
]


def log_sort_key(log: Mapping[str, Any]):
    return (int(log.get("blockNumber", 0)), int(log.get("logIndex", 0)))


def _hex(value) -> str:
    if value is None:
        return ""
    return HexBytes(value).to_0x_hex() if not isinstance(value, str) else value


def decode_task_log(log: Mapping[str, Any]) -> Task:
    """
    Decode a raw eth_getLogs entry into a validated Task.
    Raises TaskDecodeError for anything that is not a well-formed NewTaskCreated log.
    """
    try:
        topics = [HexBytes(t) for t in log["topics"]]
        data = HexBytes(log["data"])
        block_number = int(log["blockNumber"])
    except (KeyError, TypeError, ValueError) as e:
        raise TaskDecodeError(f"Malformed log entry: {e}") from e

    if not topics or topics[0] != NEW_TASK_TOPIC:
        raise TaskDecodeError(f"Unexpected event selector in block {block_number}")
    if len(topics) != 2:
        raise TaskDecodeError(f"Expected 2 topics, got {len(topics)} in block {block_number}")

    try:
        (task_index,) = abi_decode(["uint32"], bytes(topics[1]))
        ((token_id, created_block),) = abi_decode(_DATA_TYPES, bytes(data))
    except (DecodingError, ValueError) as e:
        raise TaskDecodeError(f"Could not ABI-decode NewTaskCreated in block {block_number}: {e}") from e

    try:
        return Task(
            task_index=task_index,
            subject_reference=str(token_id),
            creation_block=created_block,
            block_number=block_number,
            log_index=int(log.get("logIndex", 0)),
            transaction_hash=_hex(log.get("transactionHash")),
        )
    except ValidationError as e:
        raise TaskDecodeError(f"NewTaskCreated payload failed validation: {e}") from e
