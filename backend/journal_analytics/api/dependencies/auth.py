"""Request scoping helpers for API routes."""

from __future__ import annotations

from fastapi import Header, HTTPException, Request, status

from journal_analytics.services.analytics import AnalyticsService


async def get_current_user_id(x_user_id: str | None = Header(default=None, alias="X-User-Id")) -> str:
    """Return the caller's user id as forwarded by the gateway."""

    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    return x_user_id.strip()


def get_analytics_service(request: Request) -> AnalyticsService:
    return request.app.state.analytics_service


__all__ = ["get_current_user_id", "get_analytics_service"]
