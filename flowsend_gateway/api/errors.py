"""HTTP error responses shared by the v1 routers"""

from fastapi import HTTPException


def not_configured(message: str) -> HTTPException:
    """Structured response for missing credentials; the upstream API is never called"""
    return HTTPException(status_code=503, detail={"error": "not_configured", "message": message})


def upstream_failed(message: str) -> HTTPException:
    """Upstream provider error, message passed through verbatim"""
    return HTTPException(status_code=502, detail={"error": "upstream_error", "message": message})
