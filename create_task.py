"""
Manual task creation tool
Sends createNewTask(tokenId) to the service manager so the operator has something to respond to
"""
import argparse
import logging
import sys

from colorama import Fore
from eth_account import Account

from avs_operator.chain import ChainClient
from avs_operator.config import OperatorConfig
from avs_operator.events import SERVICE_MANAGER_ABI
from avs_operator.exceptions import ConfigError
from avs_operator.logging_setup import setup_logging

logger = logging.getLogger("CreateTask")


def create_task(config: OperatorConfig, token_id: int, gas_limit: int) -> str:
    chain = ChainClient(config.rpc_url, request_timeout=config.rpc_timeout_seconds)
    if not chain.connect():
        raise ConnectionError(f"Could not connect to {config.rpc_url}")

    account = Account.from_key(config.normalized_private_key)
    contract = chain.contract(config.service_manager_address, SERVICE_MANAGER_ABI)

    tx = contract.functions.createNewTask(token_id).build_transaction({
        'from': account.address,
        'gas': gas_limit,
        'nonce': chain.w3.eth.get_transaction_count(account.address, 'pending'),
    })
    signed_tx = account.sign_transaction(tx)
    tx_hash = chain.w3.eth.send_raw_transaction(signed_tx.raw_transaction)

    receipt = chain.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=config.receipt_timeout_seconds)
    if receipt['status'] != 1:
        raise RuntimeError(f"createNewTask reverted: {tx_hash.to_0x_hex()}")
    return tx_hash.to_0x_hex()


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a domain valuation task")
    parser.add_argument("--token-id", type=int, required=True, help="Tokenized domain id to value")
    parser.add_argument("--gas-limit", type=int, default=300000, help="Gas limit (default: 300000)")
    parser.add_argument("--config", type=str, default=None, help="Path to operator.yaml")
    args = parser.parse_args()

    setup_logging("INFO")

    try:
        config = OperatorConfig.load(args.config)
        if not (config.rpc_url and config.private_key and config.service_manager_address):
            raise ConfigError("RPC_URL, PRIVATE_KEY and SERVICE_MANAGER_ADDRESS are required")
    except ConfigError as e:
        logger.error(f"❌ {e}")
        return 1

    print(f"{Fore.CYAN}🛠️  Creating task for token id {args.token_id}...")
    try:
        tx_hash = create_task(config, args.token_id, args.gas_limit)
    except Exception as e:
        logger.error(f"❌ Error sending transaction: {e}")
        return 1

    print(f"{Fore.GREEN}✅ Transaction successful with hash: {tx_hash}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
