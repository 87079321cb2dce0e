from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Request

from ..auth import require_user
from ..notifications import Notifier
from ..schemas import NotificationOut

router = APIRouter(
    prefix="/api/v1/notifications",
    tags=["notifications"],
    dependencies=[Depends(require_user)],
)


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[NotificationOut],
    summary="Drain Notifications",
    description="Return pending one-shot notifications, oldest first, and clear them.",
)
def drain_notifications(notifier: Notifier = Depends(get_notifier)) -> List[NotificationOut]:
    return [
        NotificationOut(level=n.level, message=n.message, created_at=n.created_at)
        for n in notifier.drain()
    ]
