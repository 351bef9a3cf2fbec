"""
Locale projection for bilingual content.

Stored items may hold bilingual values (``{"ar": ..., "en": ...}``) in their
top-level fields. These helpers flatten such fields to the requested locale
and leave everything else alone. Nothing here mutates its input.
"""
from typing import Any, Dict, List, Optional

from schemas import Localized


def resolve_locale(accept_language: Optional[str]) -> str:
    if accept_language and accept_language.startswith("en"):
        return "en"
    return "ar"


def _resolve_value(value: Any, locale: str) -> Any:
    if isinstance(value, Localized):
        return value.resolve(locale)
    if isinstance(value, dict) and "ar" in value:
        return value.get(locale)
    return value


def project_item(item: Optional[Dict[str, Any]], locale: Optional[str] = None) -> Optional[Dict[str, Any]]:
    if item is None:
        return None
    locale = resolve_locale(locale)
    return {key: _resolve_value(value, locale) for key, value in item.items()}


def project_collection(items: Any, locale: Optional[str] = None) -> List[Dict[str, Any]]:
    if not isinstance(items, (list, tuple)):
        return []
    return [project_item(item, locale) for item in items]


def project_user(user: Optional[Dict[str, Any]], locale: Optional[str] = None) -> Optional[Dict[str, Any]]:
    # User fields are never bilingual; only the embedded challenge snapshot is.
    if user is None:
        return None
    projected = dict(user)
    if projected.get("activeChallenge"):
        projected["activeChallenge"] = project_item(projected["activeChallenge"], locale)
    return projected
