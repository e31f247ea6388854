import argparse
import json
import sys
from datetime import datetime

from loguru import logger

from tokenflow.analytics import analyze_wallet
from tokenflow.base import setup_logger, get_batched_operation_config
from tokenflow.feed import (
    TransferFeedClient, TransferFeedError, NoTransfersError, filter_token_transfers, validate_address,
)


def load_transfers_file(path: str) -> list:
    """Read transfers from a saved feed response or a bare JSON list."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise TransferFeedError(f"Cannot read transfers from {path}: {e}") from e
    if isinstance(data, dict):
        data = data.get("result") or []
    if not isinstance(data, list) or not all(isinstance(record, dict) for record in data):
        raise TransferFeedError(f"Expected a list of transfer objects in {path}")
    transfers = filter_token_transfers(data)
    if not transfers:
        raise NoTransfersError(f"No token transfers found in {path}")
    return transfers


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Token transfer analytics for one wallet')
    parser.add_argument(
        'address',
        type=str,
        help='Wallet address (0x followed by 40 hex digits)'
    )
    parser.add_argument(
        '--transfers-file',
        type=str,
        default=None,
        help='Analyse transfers from a JSON file instead of querying the feed'
    )
    parser.add_argument(
        '--now',
        type=datetime.fromisoformat,
        default=None,
        help='Clock value in ISO 8601 form (default: current local time)'
    )
    args = parser.parse_args(argv)

    setup_logger('tokenflow-cli', console=sys.stderr)

    try:
        validate_address(args.address)
        if args.transfers_file:
            transfers = load_transfers_file(args.transfers_file)
        else:
            client = TransferFeedClient()
            try:
                transfers = client.fetch_transfers(args.address)
            finally:
                client.close()
    except TransferFeedError as e:
        logger.error(f"Wallet query failed: {e}")
        return 1

    batched = get_batched_operation_config()
    result = analyze_wallet(
        transfers,
        args.address,
        now=args.now,
        batched_contract=batched["contract"],
        batched_marker=batched["marker"],
    )
    sys.stdout.write(result.model_dump_json(indent=2) + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
