import os
import sys
from dotenv import load_dotenv
from loguru import logger
from .metrics import setup_metrics, AnalyticsMetrics
from .enhanced_logging import (
    ErrorContextManager, classify_error, log_service_start, get_logs_dir, record_patcher,
)


load_dotenv()

DEFAULT_FEED_URL = "https://api.etherscan.io/v2/api"
DEFAULT_TOKEN_CONTRACT = "0x06f71fb90F84b35302d132322A3C90E4477333b0"
DEFAULT_CHAIN_ID = "8453"
DEFAULT_BATCHED_CONTRACT = "0x7f136881b236ed9a403da7a7dd632e9d0390eb63"
DEFAULT_BATCHED_MARKER = "handleOps"


def get_feed_config():
    """Settings used by the transfer feed client."""
    return {
        "url": os.getenv("TOKENFLOW_FEED_URL", DEFAULT_FEED_URL),
        "api_key": os.getenv("ETHERSCAN_API_KEY", "").strip() or None,
        "token_contract": os.getenv("TOKENFLOW_TOKEN_CONTRACT", DEFAULT_TOKEN_CONTRACT),
        "chain_id": os.getenv("TOKENFLOW_CHAIN_ID", DEFAULT_CHAIN_ID),
        "timeout": int(os.getenv("TOKENFLOW_HTTP_TIMEOUT", "30")),
    }


def get_proxy_config():
    """Settings used by the credential-forwarding proxy."""
    return {
        "upstream_url": os.getenv("TOKENFLOW_UPSTREAM_URL", DEFAULT_FEED_URL),
        "api_key": os.getenv("ETHERSCAN_API_KEY", "").strip() or None,
        "timeout": int(os.getenv("TOKENFLOW_HTTP_TIMEOUT", "30")),
    }


def get_batched_operation_config():
    return {
        "contract": os.getenv("TOKENFLOW_BATCHED_CONTRACT", DEFAULT_BATCHED_CONTRACT),
        "marker": os.getenv("TOKENFLOW_BATCHED_MARKER", DEFAULT_BATCHED_MARKER),
    }


def setup_logger(service_name, console=sys.stdout):
    patch_record = record_patcher(service_name)
    level = os.getenv("TOKENFLOW_LOG_LEVEL", "INFO").upper()

    logs_dir = get_logs_dir()
    os.makedirs(logs_dir, exist_ok=True)

    logger.remove()

    # File logger with JSON serialization for Loki ingestion
    logger.add(
        os.path.join(logs_dir, f"{service_name}.log"),
        rotation="500 MB",
        level=level,
        filter=patch_record,
        serialize=True
    )

    # Console logger with human-readable format
    logger.add(
        console,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level}</level> | <cyan>{extra[service]}</cyan> | <blue>{extra[correlation_id]}</blue> | {message}",
        level=level,
        filter=patch_record,
        enqueue=True,
        backtrace=False,
        diagnose=False,
    )
