"""Path-prefix tables used by the edge middleware."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

PROTECTED_ROUTES: Tuple[str, ...] = (
    "/dashboard",
    "/students",
    "/incidents",
    "/permisos",
    "/docentes",
    "/settings",
    "/nee",
    "/desertion",
    "/risk-assessment",
    "/api/students",
    "/api/incidents",
    "/api/dashboard",
    "/api/permissions",
    "/api/nee",
    "/api/dropouts",
    "/api/risks",
    "/api/grades",
    "/api/sections",
    "/api/assignments",
    "/api/profiles",
    "/api/settings",
    "/api/admin",
    "/api/catalogs",
)

PUBLIC_ROUTES: Tuple[str, ...] = (
    "/login",
    "/register",
    "/about",
    "/api/auth",
)

ASSET_PREFIXES: Tuple[str, ...] = ("/static", "/images")

STALE_WHILE_REVALIDATE_SECONDS = 86400
IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"


@dataclass(frozen=True)
class CacheRule:
    type: str
    prefixes: Tuple[str, ...]
    max_age: int
    s_maxage: int


CACHE_RULES: Tuple[CacheRule, ...] = (
    CacheRule("static", ("/login", "/register", "/about"), max_age=3600, s_maxage=7200),
    CacheRule("dynamic", ("/dashboard", "/students", "/incidents", "/permisos"), max_age=300, s_maxage=600),
    CacheRule("api", ("/api",), max_age=60, s_maxage=300),
    CacheRule("assets", ("/static", "/favicon.ico", "/images"), max_age=31536000, s_maxage=31536000),
)


def match_cache_rule(path: str) -> Optional[CacheRule]:
    """First rule with a matching prefix wins."""

    for rule in CACHE_RULES:
        if path.startswith(rule.prefixes):
            return rule
    return None


def cache_headers(rule: CacheRule, now_ms: int) -> Dict[str, str]:
    return {
        "Cache-Control": (
            f"public, max-age={rule.max_age}, s-maxage={rule.s_maxage}, "
            f"stale-while-revalidate={STALE_WHILE_REVALIDATE_SECONDS}"
        ),
        "X-Cache-Type": rule.type,
        "Vary": "Accept-Encoding, Authorization",
        "ETag": f'"{now_ms}-{rule.type}"',
    }


def is_protected(path: str) -> bool:
    return path.startswith(PROTECTED_ROUTES)


def is_public(path: str) -> bool:
    return path.startswith(PUBLIC_ROUTES)


def is_asset(path: str) -> bool:
    return path.startswith(ASSET_PREFIXES)


__all__ = [
    "CACHE_RULES",
    "CacheRule",
    "IMMUTABLE_CACHE_CONTROL",
    "PROTECTED_ROUTES",
    "PUBLIC_ROUTES",
    "cache_headers",
    "is_asset",
    "is_protected",
    "is_public",
    "match_cache_rule",
]
