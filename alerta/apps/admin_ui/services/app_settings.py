from __future__ import annotations

from typing import Any, Dict, Mapping

from alerta.core.db import async_session
from alerta.core.sanitizers import clean_text
from alerta.domain.models import SETTINGS_ROW_ID, AppSettings

__all__ = ["get_app_settings", "registration_allowed", "update_app_settings"]

_TEXT_FIELDS = {"app_name": 120, "institution_name": 160, "logo_url": 512, "primary_color": 16}


def serialize_settings(settings: AppSettings) -> Dict[str, Any]:
    return {
        "allow_registration": settings.allow_registration,
        "app_name": settings.app_name,
        "institution_name": settings.institution_name,
        "logo_url": settings.logo_url,
        "primary_color": settings.primary_color,
    }


async def _load(session) -> AppSettings:
    row = await session.get(AppSettings, SETTINGS_ROW_ID)
    if row is None:
        row = AppSettings(id=SETTINGS_ROW_ID)
        session.add(row)
        await session.flush()
    return row


async def get_app_settings() -> Dict[str, Any]:
    async with async_session() as session:
        row = await _load(session)
        await session.commit()
        return serialize_settings(row)


async def registration_allowed() -> bool:
    return bool((await get_app_settings())["allow_registration"])


async def update_app_settings(changes: Mapping[str, Any]) -> Dict[str, Any]:
    async with async_session() as session:
        row = await _load(session)
        if changes.get("allow_registration") is not None:
            row.allow_registration = bool(changes["allow_registration"])
        for field, max_length in _TEXT_FIELDS.items():
            if changes.get(field) is not None:
                setattr(row, field, clean_text(changes[field], max_length=max_length))
        await session.commit()
        return serialize_settings(row)
