from datetime import datetime
from typing import Any, Dict, Optional

from tokenflow.analytics import WalletAnalytics, analyze_wallet
from tokenflow.base import ErrorContextManager, get_batched_operation_config, get_feed_config
from tokenflow.base.metrics import AnalyticsMetrics
from tokenflow.feed import TransferFeedClient


class WalletAnalyticsService:
    def __init__(self, feed_config: Optional[Dict[str, Any]] = None,
                 metrics: Optional[AnalyticsMetrics] = None,
                 client: Optional[TransferFeedClient] = None):
        """Initialize the service with a transfer feed client

        Args:
            feed_config: Feed settings, defaults to the environment configuration
            metrics: Optional metrics sink shared with the feed client
            client: Pre-built feed client, mainly for tests
        """
        self.metrics = metrics
        self.client = client or TransferFeedClient(feed_config or get_feed_config(), metrics=metrics)
        self.batched = get_batched_operation_config()
        self.error_ctx = ErrorContextManager("tokenflow-api")

    def close(self):
        """Close the feed client's HTTP session"""
        self.client.close()

    def get_wallet_analytics(self, address: str, now: Optional[datetime] = None) -> WalletAnalytics:
        """
        Fetch transfers for address and compute its analytics.

        Args:
            address: 0x-prefixed wallet address
            now: Optional clock value, defaults to the current local time

        Returns:
            WalletAnalytics for the wallet
        """
        with self.error_ctx.start_operation("wallet_analytics", address=address):
            transfers = self.client.fetch_transfers(address)
            return analyze_wallet(
                transfers,
                address,
                now=now,
                batched_contract=self.batched["contract"],
                batched_marker=self.batched["marker"],
                metrics=self.metrics,
            )
