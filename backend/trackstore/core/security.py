"""Caller identification and API access logging"""
import json
import logging
from datetime import datetime, timezone
from typing import Optional
from fastapi import Request

from trackstore.core.exceptions import Unauthorized
from trackstore.db import redis as session_store

security_logger = logging.getLogger("security")
api_access_logger = logging.getLogger("api_access")


def get_session_id(request: Request) -> Optional[str]:
    """Session id from the session cookie, or from an 'Authorization: Bearer' header"""
    session_id = request.cookies.get("session_id")
    if session_id:
        return session_id

    authorization = request.headers.get("Authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


def require_auth(request: Request) -> str:
    """Dependency: Require authentication, return buyer_id"""
    session_id = get_session_id(request)

    if not session_id:
        raise Unauthorized()

    buyer_id = session_store.get_session(session_id)
    if not buyer_id:
        security_logger.info(f"Unknown or expired session - Path: {request.url.path}")
        raise Unauthorized("Session expired. Please log in again.")

    return buyer_id


def log_api_access(
    request: Request,
    status_code: int = 200,
    error: Optional[str] = None
):
    """Log API access information; failures at WARNING, the rest at DEBUG"""
    client_ip = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    if not client_ip:
        client_ip = request.client.host if request.client else "unknown"

    session_id = get_session_id(request)
    log_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "method": request.method,
        "path": request.url.path,
        "session_id": session_id[:8] + "..." if session_id else None,
        "client_ip": client_ip,
        "user_agent": request.headers.get("User-Agent", "unknown"),
        "status_code": status_code,
        "error": error
    }

    if error or status_code >= 400:
        api_access_logger.warning(f"API Access: {json.dumps(log_data)}")
    else:
        api_access_logger.debug(f"API Access: {json.dumps(log_data)}")
