from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from alerta.core.auth import get_password_hash, verify_password
from alerta.core.db import async_session
from alerta.core.sanitizers import clean_text, normalize_dni, normalize_email
from alerta.domain.errors import DuplicateEmailError, NotFoundError
from alerta.domain.models import Profile, Role

__all__ = [
    "authenticate",
    "create_profile",
    "delete_profile",
    "find_active_profile",
    "get_profile",
    "list_profiles",
    "serialize_profile",
    "update_profile",
]

logger = logging.getLogger(__name__)


def serialize_profile(profile: Profile) -> Dict[str, Any]:
    return {
        "id": profile.id,
        "name": profile.name,
        "email": profile.email,
        "role": profile.role,
        "dni": profile.dni,
        "is_active": profile.is_active,
    }


async def list_profiles(*, role: Optional[str] = None) -> List[Dict[str, Any]]:
    query = select(Profile).order_by(Profile.name.asc())
    if role:
        query = query.where(Profile.role == role)
    async with async_session() as session:
        return [serialize_profile(p) for p in (await session.scalars(query)).all()]


async def get_profile(profile_id: str) -> Dict[str, Any]:
    async with async_session() as session:
        profile = await session.get(Profile, profile_id)
        if profile is None:
            raise NotFoundError("Profile", profile_id)
        return serialize_profile(profile)


async def create_profile(
    *,
    name: str,
    email: str,
    password: str,
    role: str = Role.DOCENTE,
    dni: Optional[str] = None,
) -> Dict[str, Any]:
    """Create a login-capable profile.

    Raises:
        DuplicateEmailError: the email is already registered.
        ValueError: invalid email, role or empty name.
    """
    clean_name = clean_text(name, max_length=160)
    if not clean_name:
        raise ValueError("Name cannot be empty")
    if not password:
        raise ValueError("Password is required")
    normalized = normalize_email(email)

    async with async_session() as session:
        if await session.scalar(select(Profile.id).where(Profile.email == normalized)):
            raise DuplicateEmailError(normalized)
        profile = Profile(
            name=clean_name,
            email=normalized,
            role=role,
            dni=normalize_dni(dni) or None,
            password_hash=get_password_hash(password),
        )
        session.add(profile)
        try:
            await session.commit()
        except IntegrityError as exc:
            raise DuplicateEmailError(normalized) from exc
        logger.info("Profile %s created with role %s", profile.id, role)
        return serialize_profile(profile)


async def find_active_profile(profile_id: str) -> Optional[Profile]:
    """The profile behind an access token, or None once it is deleted or deactivated."""
    async with async_session() as session:
        profile = await session.get(Profile, profile_id)
    if profile is None or not profile.is_active:
        return None
    return profile


async def authenticate(email: str, password: str) -> Optional[Profile]:
    async with async_session() as session:
        profile = await session.scalar(
            select(Profile).where(
                Profile.email == normalize_email(email), Profile.is_active.is_(True)
            )
        )
    if profile is None or not verify_password(password, profile.password_hash):
        return None
    return profile


async def update_profile(profile_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
    async with async_session() as session:
        profile = await session.get(Profile, profile_id)
        if profile is None:
            raise NotFoundError("Profile", profile_id)
        if changes.get("name"):
            profile.name = clean_text(changes["name"], max_length=160)
        if changes.get("email"):
            normalized = normalize_email(changes["email"])
            taken = await session.scalar(
                select(Profile.id).where(Profile.email == normalized, Profile.id != profile.id)
            )
            if taken:
                raise DuplicateEmailError(normalized)
            profile.email = normalized
        if changes.get("role"):
            profile.role = changes["role"]
        if "dni" in changes:
            profile.dni = normalize_dni(changes["dni"]) or None
        if changes.get("password"):
            profile.password_hash = get_password_hash(changes["password"])
        if changes.get("is_active") is not None:
            profile.is_active = bool(changes["is_active"])
        await session.commit()
        return serialize_profile(profile)


async def delete_profile(profile_id: str) -> None:
    async with async_session() as session:
        profile = await session.get(Profile, profile_id)
        if profile is None:
            raise NotFoundError("Profile", profile_id)
        await session.delete(profile)
        await session.commit()
    logger.info("Profile %s deleted", profile_id)
