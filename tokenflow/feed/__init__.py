from tokenflow.feed.transfer_feed import (
    TransferFeedClient, TransferFeedError, InvalidAddressError, UpstreamError, NoTransfersError,
    filter_token_transfers, is_valid_address, validate_address,
)
