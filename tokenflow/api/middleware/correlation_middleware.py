"""
Correlation ID middleware for FastAPI applications.

This middleware ensures that all API requests have correlation IDs for tracing
and links them to the enhanced logging system.
"""

import time
from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from tokenflow.base.enhanced_logging import generate_correlation_id, set_correlation_id


class CorrelationMiddleware(BaseHTTPMiddleware):
    """
    Middleware to handle correlation IDs for request tracing.

    Reuses an incoming X-Correlation-ID header or generates one, binds it for
    logging during the request and echoes it on the response.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("x-correlation-id") or generate_correlation_id()

        request.state.correlation_id = correlation_id
        set_correlation_id(correlation_id)
        request.state.start_time = time.time()

        try:
            response = await call_next(request)
            response.headers["X-Correlation-ID"] = correlation_id
            return response

        except Exception as e:
            logger.error(f"Unhandled error while serving {request.url.path}: {e}")
            return Response(
                content=f"Internal server error: {str(e)}",
                status_code=500,
                headers={"X-Correlation-ID": correlation_id}
            )

        finally:
            set_correlation_id(None)


def get_request_context(request: Request) -> dict:
    """
    Extract request context for logging.

    Args:
        request: FastAPI request object

    Returns:
        dict: Request context for logging
    """
    return {
        "method": request.method,
        "path": request.url.path,
        "query_params": sanitize_params(dict(request.query_params)),
        "client_ip": request.client.host if request.client else "unknown",
        "correlation_id": getattr(request.state, 'correlation_id', None),
        "processing_time": time.time() - getattr(request.state, 'start_time', time.time())
    }


def sanitize_params(params: dict) -> dict:
    """
    Sanitize request parameters for logging (remove sensitive data).

    Args:
        params: Request parameters

    Returns:
        dict: Sanitized parameters
    """
    sensitive_keys = {'password', 'token', 'apikey', 'api_key', 'secret', 'auth'}
    sanitized = {}

    for key, value in params.items():
        if any(sensitive in key.lower() for sensitive in sensitive_keys):
            sanitized[key] = "[REDACTED]"
        else:
            sanitized[key] = value

    return sanitized
