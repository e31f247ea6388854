import requests
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from loguru import logger

from tokenflow.api.middleware.correlation_middleware import get_request_context
from tokenflow.base import get_proxy_config

router = APIRouter(
    tags=["feed-proxy"],
    responses={
        400: {"description": "Missing module or action"},
        500: {"description": "Proxy misconfigured or upstream unreachable"}
    }
)

REQUIRED_PARAMS = ("module", "action")


@router.get(
    "/feed-proxy",
    summary="Forward a Transfer Feed Query",
    description=(
        "Forwards the query string to the upstream transfer feed with the server-held API key "
        "appended. The upstream body is returned unchanged with its status code."
    ),
)
def forward_feed_query(request: Request):
    params = dict(request.query_params)
    missing = [name for name in REQUIRED_PARAMS if not params.get(name)]
    if missing:
        return JSONResponse(
            status_code=400,
            content={"error": f"Missing required query parameters: {', '.join(missing)}"}
        )

    config = get_proxy_config()
    if not config["api_key"]:
        return JSONResponse(status_code=500, content={"error": "Server missing ETHERSCAN_API_KEY"})

    params["apikey"] = config["api_key"]

    try:
        upstream = requests.get(config["upstream_url"], params=params, timeout=config["timeout"])
    except requests.exceptions.RequestException as e:
        logger.error(
            "Feed proxy error",
            error=str(e),
            request_context=get_request_context(request),
        )
        return JSONResponse(status_code=500, content={"error": str(e) or "Proxy error"})

    return Response(
        content=upstream.text,
        status_code=200 if upstream.ok else upstream.status_code,
        media_type="application/json",
    )
