"""Bulk creation of staff profiles from an uploaded list."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from alerta.domain.errors import DuplicateEmailError
from alerta.domain.models import Role

from .profiles import create_profile

__all__ = ["bulk_import_users"]

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("name", "email", "password", "role", "dni")


def _describe(user: Any) -> str:
    if isinstance(user, dict):
        return str(user.get("email") or "<sin email>")
    return "<entrada inválida>"


async def bulk_import_users(users: Iterable[Any]) -> Dict[str, Any]:
    """Create one profile per entry.

    Emails that are already registered count as skipped; any other failure is
    collected as ``"<email>: <message>"`` and the import continues.
    """

    users = list(users)
    logger.info("Bulk importing %d users", len(users))
    imported = 0
    skipped = 0
    errors: List[str] = []

    for user in users:
        label = _describe(user)
        if not isinstance(user, dict):
            errors.append(f"{label}: invalid entry")
            continue
        wrong_type = next(
            (field for field in _TEXT_FIELDS if not isinstance(user.get(field), (str, type(None)))),
            None,
        )
        if wrong_type is not None:
            errors.append(f"{label}: {wrong_type} must be text")
            continue
        try:
            await create_profile(
                name=user.get("name") or "",
                email=user.get("email") or "",
                password=user.get("password") or "",
                role=user.get("role") or Role.DOCENTE,
                dni=user.get("dni"),
            )
        except DuplicateEmailError:
            skipped += 1
            logger.info("User %s already exists, skipping", label)
            continue
        except ValueError as exc:
            errors.append(f"{label}: {exc}")
            continue
        except Exception as exc:
            # One bad row must not abort the rows after it.
            logger.warning("Unexpected error importing %s", label, exc_info=True)
            errors.append(f"{label}: {exc}")
            continue
        imported += 1

    logger.info(
        "Bulk import completed: %d imported, %d skipped, %d errors",
        imported,
        skipped,
        len(errors),
    )
    return {"imported": imported, "skipped": skipped, "errors": errors}
