"""Security headers, request screening and JSON responses for the HTTP API."""

from typing import Any

import orjson
from aiohttp.web import Request, Response, middleware

from .logging import get_logger

logger = get_logger(__name__)

SERVER_NAME = 'NBA-News-Hub'

SUSPICIOUS_PATTERNS = (
    # Common attack patterns
    '../', '..\\', '<script', 'javascript:', 'vbscript:',
    'onload=', 'onerror=', 'eval(', 'exec(', 'system(',
    'union select', 'drop table', 'insert into',
    # Path traversal
    '../../../../', '..%2f', '%2e%2e%2f',
    # SQL injection
    "' or '1'='1", '" or "1"="1', 'or 1=1--',
    # XSS
    'alert(', 'confirm(', 'prompt(',
    # Command injection
    ';cat ', '|cat ', '`cat ', '$(cat ',
)


def get_security_headers() -> dict[str, str]:
    """Get security headers for HTTP responses.

    Returns:
        Dictionary of security headers
    """
    return {
        'X-Content-Type-Options': 'nosniff',
        'X-Frame-Options': 'DENY',
        'Strict-Transport-Security': 'max-age=31536000; includeSubDomains',

        # The API only serves JSON
        'Content-Security-Policy': "default-src 'none'; frame-ancestors 'none'",

        'Referrer-Policy': 'strict-origin-when-cross-origin',

        # Vote results and fresh news must not be served from intermediaries
        'Cache-Control': 'no-store, no-cache, must-revalidate, private',
        'Pragma': 'no-cache',
    }


@middleware
async def security_middleware(request: Request, handler) -> Response:
    """Add security headers to all responses.

    Args:
        request: HTTP request
        handler: Request handler

    Returns:
        HTTP response with security headers
    """
    logger.debug(
        "Security middleware processing request",
        method=request.method,
        path=request.path,
        remote=request.remote,
        user_agent=request.headers.get('User-Agent', 'Unknown')
    )

    if is_suspicious_request(request):
        logger.warning(
            "Suspicious request detected",
            method=request.method,
            path=request.path,
            remote=request.remote,
            user_agent=request.headers.get('User-Agent')
        )

    response = await handler(request)

    for header_name, header_value in get_security_headers().items():
        response.headers[header_name] = header_value
    response.headers['Server'] = SERVER_NAME

    return response


def is_suspicious_request(request: Request) -> bool:
    """Check if request contains suspicious patterns.

    Args:
        request: HTTP request to check

    Returns:
        True if request appears suspicious
    """
    path_lower = str(request.url).lower()

    if any(pattern in path_lower for pattern in SUSPICIOUS_PATTERNS):
        return True

    if len(request.path) > 1000:
        return True

    return len(request.query) > 50


def validate_content_type(content_type: str, allowed_types: list) -> bool:
    """Validate content type against allowed list.

    Args:
        content_type: Content type to validate
        allowed_types: List of allowed content types

    Returns:
        True if content type is allowed
    """
    if not content_type:
        return False

    main_type = content_type.split(';')[0].strip().lower()
    return main_type in [t.lower() for t in allowed_types]


def json_response(
    payload: Any,
    status: int = 200,
    additional_headers: dict[str, str] | None = None
) -> Response:
    """Create a JSON response with security headers.

    Args:
        payload: JSON-serializable body
        status: HTTP status code
        additional_headers: Additional headers to include

    Returns:
        Secure HTTP response
    """
    headers = get_security_headers()
    if additional_headers:
        headers.update(additional_headers)

    return Response(
        body=orjson.dumps(payload),
        content_type='application/json',
        status=status,
        headers=headers
    )
