from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST
from tokenflow import version
from tokenflow.api.routers import wallet_analytics, feed_proxy, API_SERVICE_NAME, get_analytics_metrics
from tokenflow.api.middleware.correlation_middleware import CorrelationMiddleware
from tokenflow.base import setup_logger, log_service_start, get_feed_config

app = FastAPI(
    title="Tokenflow API",
    description="Token transfer analytics for a single wallet",
    version=version,
    docs_url="/docs",
    openapi_url="/openapi.json"
)

cors_origins = ["http://localhost:3000", "http://localhost:5173"]

setup_logger(API_SERVICE_NAME)
metrics = get_analytics_metrics()

feed_config = get_feed_config()
log_service_start(
    API_SERVICE_NAME,
    version=version,
    feed_url=feed_config["url"],
    chain_id=feed_config["chain_id"],
    token_contract=feed_config["token_contract"],
    cors_origins=cors_origins,
)

# Add correlation middleware FIRST (before other middleware)
app.add_middleware(CorrelationMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(wallet_analytics.router)
app.include_router(feed_proxy.router)


@app.get("/metrics")
async def metrics_endpoint():
    """Prometheus metrics endpoint"""
    return Response(content=metrics.registry.get_metrics_text(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
async def health_check():
    return {
        "status": "ok",
        "version": version
    }
