from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ..auth import require_user
from ..preferences import PreferenceStore
from ..schemas import DarkModeIn, DarkModeOut

router = APIRouter(
    prefix="/api/v1/preferences",
    tags=["preferences"],
    dependencies=[Depends(require_user)],
)


def get_preferences(request: Request) -> PreferenceStore:
    return request.app.state.preferences


# PUBLIC_INTERFACE
@router.get("/dark-mode", response_model=DarkModeOut, summary="Get Dark Mode")
def get_dark_mode(prefs: PreferenceStore = Depends(get_preferences)) -> DarkModeOut:
    return DarkModeOut(dark_mode=prefs.get_dark_mode())


# PUBLIC_INTERFACE
@router.put("/dark-mode", response_model=DarkModeOut, summary="Set Dark Mode")
def set_dark_mode(payload: DarkModeIn, prefs: PreferenceStore = Depends(get_preferences)) -> DarkModeOut:
    return DarkModeOut(dark_mode=prefs.set_dark_mode(payload.dark_mode))


# PUBLIC_INTERFACE
@router.post("/dark-mode/toggle", response_model=DarkModeOut, summary="Toggle Dark Mode")
def toggle_dark_mode(prefs: PreferenceStore = Depends(get_preferences)) -> DarkModeOut:
    return DarkModeOut(dark_mode=prefs.toggle_dark_mode())
