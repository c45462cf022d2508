"""In-process catalogs of free-form labels offered by the record forms.

Catalogs are not persisted: every process starts from the defaults below.
"""

from __future__ import annotations

from typing import Dict, Iterable, List

DEFAULT_INCIDENT_TYPES = (
    "Interrupción en clase",
    "Falta de respeto al personal",
    "Conflicto con compañero",
    "Uso de lenguaje inapropiado",
    "No completar tareas",
    "Ausencia injustificada",
    "Vandalismo",
    "Acoso (Bullying)",
)

DEFAULT_PERMISSION_TYPES = (
    "Excursión",
    "Autorización de Medios",
    "Permiso Médico",
    "Salida Temprana",
    "Uso de Imagen",
)

DEFAULT_NEE_DIAGNOSIS_TYPES = (
    "TDAH",
    "Dislexia",
    "Discalculia",
    "Trastorno del Espectro Autista (TEA)",
    "Discapacidad Intelectual",
    "Trastornos del Lenguaje",
)

DEFAULT_DROPOUT_REASONS = (
    "Problemas Familiares",
    "Reubicación",
    "Dificultades Académicas",
    "Problemas de Salud",
)

CATALOG_DEFAULTS: Dict[str, Iterable[str]] = {
    "incident-types": DEFAULT_INCIDENT_TYPES,
    "permission-types": DEFAULT_PERMISSION_TYPES,
    "nee-diagnosis-types": DEFAULT_NEE_DIAGNOSIS_TYPES,
    "dropout-reasons": DEFAULT_DROPOUT_REASONS,
}


class UnknownCatalogError(KeyError):
    pass


class CatalogRegistry:
    """Named label lists; additions are trimmed, de-duplicated and sorted."""

    def __init__(self, defaults: Dict[str, Iterable[str]] = CATALOG_DEFAULTS):
        # Defaults keep their declared order until the first addition.
        self._catalogs: Dict[str, List[str]] = {
            kind: list(values) for kind, values in defaults.items()
        }

    def get(self, kind: str) -> List[str]:
        try:
            return list(self._catalogs[kind])
        except KeyError:
            raise UnknownCatalogError(kind) from None

    def snapshot(self) -> Dict[str, List[str]]:
        return {kind: list(values) for kind, values in self._catalogs.items()}

    def add(self, kind: str, value: str) -> List[str]:
        values = self._require(kind)
        trimmed = (value or "").strip()
        if trimmed and trimmed not in values:
            values.append(trimmed)
            values.sort()
        return list(values)

    def delete(self, kind: str, value: str) -> List[str]:
        values = self._require(kind)
        self._catalogs[kind] = [item for item in values if item != value]
        return list(self._catalogs[kind])

    def _require(self, kind: str) -> List[str]:
        if kind not in self._catalogs:
            raise UnknownCatalogError(kind)
        return self._catalogs[kind]


__all__ = [
    "CATALOG_DEFAULTS",
    "CatalogRegistry",
    "UnknownCatalogError",
]
