from fastapi import APIRouter, Path, HTTPException, Request
from tokenflow.analytics import WalletAnalytics
from tokenflow.api.middleware.correlation_middleware import get_request_context
from tokenflow.api.routers import get_analytics_metrics
from tokenflow.api.services.wallet_analytics_service import WalletAnalyticsService
from tokenflow.base import ErrorContextManager, classify_error
from tokenflow.base.enhanced_logging import set_correlation_id
from tokenflow.feed import InvalidAddressError, NoTransfersError, UpstreamError, is_valid_address

error_ctx = ErrorContextManager("tokenflow-api")

router = APIRouter(
    prefix="/wallets",
    tags=["wallet-analytics"],
    responses={
        400: {"description": "Invalid address"},
        404: {"description": "No transfers found"},
        502: {"description": "Transfer feed error"}
    }
)


@router.get(
    "/{address}/analytics",
    response_model=WalletAnalytics,
    summary="Get Wallet Analytics",
    description=(
        "Fetches the token transfers of a wallet and derives its analytics.\n\n"
        "Returns a summary (lifetime totals, counts, ten-day balance change, batched-operation "
        "totals, activity streak and creation date), received/sent/net per day for the last "
        "10 calendar days and the reconstructed end-of-day balance for the same days."
    ),
    response_description="Wallet summary, daily flow and balance history",
)
def get_wallet_analytics(
        request: Request,
        address: str = Path(..., description="The wallet address to analyse",
                            example="0x0000000000000000000000000000000000000001"),
):
    if not is_valid_address(address):
        raise HTTPException(status_code=400, detail="Please enter a valid ETH address (0x...)")

    # Runs in the threadpool, away from the thread the middleware bound the id on
    set_correlation_id(getattr(request.state, "correlation_id", None))
    metrics = get_analytics_metrics()
    service = WalletAnalyticsService(metrics=metrics)
    try:
        return service.get_wallet_analytics(address)
    except InvalidAddressError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NoTransfersError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamError as e:
        metrics.registry.record_error(classify_error(e), component="transfer_feed")
        error_ctx.log_error(
            "Transfer feed query failed",
            error=e,
            request_context=get_request_context(request),
        )
        raise HTTPException(status_code=502, detail=str(e))
    finally:
        service.close()
        set_correlation_id(None)
