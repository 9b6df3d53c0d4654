import argparse
import asyncio
import json
import logging
import sys

from colorama import Fore, Style

from avs_operator.config import OperatorConfig
from avs_operator.exceptions import ConfigError
from avs_operator.logging_setup import setup_logging
from avs_operator.service import OperatorService

logger = logging.getLogger("Operator")


def print_banner(service: OperatorService, config: OperatorConfig):
    print(f"\n{Fore.CYAN}{'='*50}")
    print(f"{Fore.GREEN}🚀 Domain Task Operator")
    print(f"{Fore.YELLOW}Operator: {Fore.WHITE}{service.operator_address}")
    print(f"{Fore.YELLOW}Service Manager: {Fore.WHITE}{config.service_manager_address}")
    print(f"{Fore.YELLOW}RPC: {Fore.WHITE}{config.rpc_url}")
    print(f"{Fore.YELLOW}Start watermark: {Fore.WHITE}{service.poller.watermark}")
    print(f"{Fore.YELLOW}Poll interval: {Fore.WHITE}{config.poll_interval_seconds}s "
          f"({config.chunk_size} blocks per log query)")
    print(f"{Fore.CYAN}{'='*50}{Style.RESET_ALL}\n")


async def main() -> int:
    parser = argparse.ArgumentParser(description="Domain Task Operator")
    parser.add_argument("--config", type=str, default=None,
                        help="Path to operator.yaml (default: ./operator.yaml if present)")
    parser.add_argument("--once", action="store_true",
                        help="Run a single poll tick and print its outcome")
    parser.add_argument("--start-block", type=int, default=None,
                        help="First block to scan (default: current head)")
    parser.add_argument("--log-level", type=str, default=None,
                        help="DEBUG, INFO, WARNING, ERROR")
    args = parser.parse_args()

    try:
        config = OperatorConfig.load(args.config)
        if args.start_block is not None:
            config.start_block = args.start_block
        if args.log_level:
            config.log_level = args.log_level
        setup_logging(config.log_level)
        service = OperatorService.from_config(config)
    except ConfigError as e:
        setup_logging("INFO")
        logger.error(f"❌ {e}")
        return 1

    try:
        if not await service.connect():
            print(f"{Fore.RED}❌ Could not connect to the chain. Check RPC_URL.")
            return 1

        print_banner(service, config)

        if args.once:
            outcome = await service.run_once()
            print(json.dumps(outcome.to_dict(), indent=2))
            return 0

        logger.info("Monitoring for new tasks...")
        await service.run()
    finally:
        await service.close()
    return 0


def run():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print(f"\n{Fore.YELLOW}👋 Operator stopped")


if __name__ == "__main__":
    run()
