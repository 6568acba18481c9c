"""Caller identity and the host-only moderation policy.

There is no authentication: the caller states who they are through the
request body or an ``X-User-Id`` header. This module only checks that the
stated operator may moderate the space they are acting on.
"""
import logging

from fastapi import HTTPException, Request

from app.services import views
from schemas.space import Space

USER_HEADER_NAMES = ["x-user-id", "x-operator-id"]
logger = logging.getLogger("murmur.security")


def _mask_user_id(user_id: str | None) -> str:
    value = (user_id or "").strip()
    if len(value) > 8:
        return f"{value[:4]}...{value[-4:]}"
    return value or "-"


def _audit_denial(request: Request | None, reason: str, *, space_id: str | None, operator_id: str | None) -> None:
    where = "-"
    ip = "-"
    if request is not None:
        where = f"{request.method} {request.url.path}"
        ip = request.client.host if request.client else "-"
    logger.warning(
        "MODERATION_DENY reason=%s request=%s ip=%s space=%s operator=%s",
        reason,
        where,
        ip,
        space_id or "-",
        _mask_user_id(operator_id),
    )


def _extract_declared_user_id(request: Request | None) -> str | None:
    if request is None:
        return None
    for name in USER_HEADER_NAMES:
        value = (request.headers.get(name) or "").strip()
        if value:
            return value
    return None


def resolve_operator(request: Request | None, claimed_user_id: str | None = None) -> str | None:
    declared = _extract_declared_user_id(request)
    if claimed_user_id and declared and claimed_user_id != declared:
        _audit_denial(request, "operator_mismatch", space_id=None, operator_id=claimed_user_id)
        raise HTTPException(status_code=403, detail="operator does not match X-User-Id")
    return claimed_user_id or declared


def require_moderator(request: Request | None, space: Space, claimed_user_id: str | None = None) -> str:
    operator_id = resolve_operator(request, claimed_user_id)
    if not operator_id:
        _audit_denial(request, "missing_operator", space_id=space.id, operator_id=None)
        raise HTTPException(status_code=401, detail="operator_user_id is required")
    if not views.can_moderate(space, operator_id):
        _audit_denial(request, "not_moderator", space_id=space.id, operator_id=operator_id)
        raise HTTPException(status_code=403, detail="only the host can moderate this space")
    return operator_id
