import re
from typing import Any, Dict, List, Optional

import requests
from loguru import logger

from tokenflow.base import get_feed_config
from tokenflow.base.metrics import AnalyticsMetrics

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


class TransferFeedError(Exception):
    """Base class for failures that abort a wallet query."""


class InvalidAddressError(TransferFeedError):
    def __init__(self, address: str):
        super().__init__(f"Please enter a valid ETH address (0x...): {address!r}")
        self.address = address


class UpstreamError(TransferFeedError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NoTransfersError(TransferFeedError):
    pass


def is_valid_address(address: Optional[str]) -> bool:
    return bool(address) and ADDRESS_PATTERN.match(address) is not None


def validate_address(address: Optional[str]) -> str:
    if not is_valid_address(address):
        raise InvalidAddressError(address)
    return address


def is_token_transfer(record: Dict[str, Any]) -> bool:
    """
    True for fungible token movements with a non-zero amount.

    Records missing decimals or symbol, carrying a tokenID (NFTs) or a zero
    value are not counted as transfers.
    """
    value = record.get("value")
    return bool(
        record.get("tokenDecimal")
        and record.get("tokenSymbol")
        and not record.get("tokenID")
        and value
        and value != "0"
    )


def filter_token_transfers(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [record for record in records if is_token_transfer(record)]


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason or "Unknown error"
    if isinstance(body, dict):
        return body.get("error") or body.get("message") or response.reason or "Unknown error"
    return response.reason or "Unknown error"


class TransferFeedClient:
    """
    Fetches a wallet's token transfers from an Etherscan-compatible feed.

    One request per query: no retry and no pagination. Failures raise a
    TransferFeedError subclass.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 session: Optional[requests.Session] = None,
                 metrics: Optional[AnalyticsMetrics] = None):
        self.config = config or get_feed_config()
        self.session = session or requests.Session()
        self.metrics = metrics

    def close(self):
        self.session.close()

    def build_params(self, address: str) -> Dict[str, str]:
        params = {
            "module": "account",
            "action": "tokentx",
            "address": address,
            "contractaddress": self.config["token_contract"],
            "chainid": str(self.config["chain_id"]),
            "startblock": "0",
            "endblock": "99999999",
            "sort": "asc",
        }
        if self.config.get("api_key"):
            params["apikey"] = self.config["api_key"]
        return params

    def _record(self, outcome: str):
        if self.metrics is not None:
            self.metrics.record_feed_request(outcome)

    def fetch_transfers(self, address: str) -> List[Dict[str, Any]]:
        """
        Fetch and pre-filter the token transfers of address.

        Raises:
            InvalidAddressError: address is not a 0x-prefixed 40 hex digit account
            UpstreamError: transport failure, non-success status or API error payload
            NoTransfersError: the feed returned no usable transfers
        """
        validate_address(address)

        logger.info(f"Fetching token transfers for {address}")
        try:
            response = self.session.get(
                self.config["url"],
                params=self.build_params(address),
                timeout=self.config.get("timeout", 30),
            )
        except requests.exceptions.RequestException as e:
            self._record("transport_error")
            raise UpstreamError(f"Failed to fetch data: {e}") from e

        if not response.ok:
            self._record("http_error")
            raise UpstreamError(f"Proxy error: {_error_detail(response)}", response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            self._record("malformed_body")
            raise UpstreamError("Malformed response body from transfer feed") from e

        if not isinstance(data, dict):
            self._record("malformed_body")
            raise UpstreamError("Malformed response body from transfer feed")

        if data.get("status") == "0" or data.get("message") == "NOTOK":
            result = data.get("result")
            # Etherscan reports "No transactions found" as status 0 with an empty list
            if isinstance(result, list) and not result:
                self._record("empty")
                raise NoTransfersError("No token transactions found for this address.")
            self._record("api_error")
            raise UpstreamError(f"API Error: {result or data.get('message') or 'Unknown API error'}")

        result = data.get("result")
        if not isinstance(result, list) or not result:
            self._record("empty")
            raise NoTransfersError("No token transactions found for this address.")

        transfers = filter_token_transfers(result)
        if not transfers:
            self._record("empty")
            raise NoTransfersError("No ERC-20 token transfers found for this address.")

        self._record("success")
        logger.info(
            f"Fetched {len(transfers)} token transfers",
            extra={"address": address, "raw_records": len(result)}
        )
        return transfers
