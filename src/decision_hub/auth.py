"""Caller identity for first-party routes.

Authentication happens upstream; the gateway forwards the verified tenant and
user as headers. Requests without a tenant are rejected.
"""

from dataclasses import dataclass

from fastapi import HTTPException, Request

from decision_hub.config import get_settings


@dataclass(frozen=True)
class Principal:
    organization_id: str
    user_id: str | None = None

    @property
    def reviewer(self) -> str:
        return self.user_id or "system"


async def get_principal(request: Request) -> Principal:
    """Read ``X-Organization-Id`` / ``X-User-Id``. Raises 401 if the tenant is missing."""
    organization_id = request.headers.get("X-Organization-Id", "").strip()
    if not organization_id:
        raise HTTPException(status_code=401, detail="Missing organization context")
    user_id = request.headers.get("X-User-Id", "").strip() or None
    return Principal(organization_id=organization_id, user_id=user_id)


async def verify_scheduler(request: Request) -> None:
    """Verify the scheduler secret header for protected endpoints.

    Raises HTTPException 403 if the header is missing, empty, or mismatched.
    """
    settings = get_settings()
    secret = request.headers.get("X-Scheduler-Secret", "")
    if not settings.scheduler_secret or secret != settings.scheduler_secret:
        raise HTTPException(status_code=403, detail="Invalid scheduler secret")
