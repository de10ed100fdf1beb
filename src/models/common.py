"""Shared enums, name helpers, and the base model used across lineage models."""

from __future__ import annotations

from enum import IntEnum, StrEnum

from pydantic import BaseModel


# --- Shared enums ---


class EventType(StrEnum):
    """Change-event categories as labelled in the source event log."""

    CREATION = "設置"
    NEW_FORMATION = "新設"
    ABSORPTION = "編入"
    SPLIT_OFF = "分立"
    CITY_STATUS = "市制施行"
    TOWN_STATUS = "町制施行"
    RENAME = "名称変更"
    JURISDICTION_CHANGE = "郡変更"
    BOUNDARY_CHANGE = "境界変更"


# Event types that move a unit between districts without touching its identity.
JURISDICTION_ONLY_EVENT_TYPES: frozenset[str] = frozenset({
    EventType.JURISDICTION_CHANGE,
    EventType.BOUNDARY_CHANGE,
})


class AdminClass(IntEnum):
    """Administrative class of a municipality, ordered village < town < city."""

    VILLAGE = 1
    TOWN = 2
    CITY = 3


_NAME_SUFFIXES: tuple[tuple[str, AdminClass], ...] = (
    ("市", AdminClass.CITY),
    ("町", AdminClass.TOWN),
    ("村", AdminClass.VILLAGE),
)

_PHONETIC_SUFFIXES: tuple[tuple[str, AdminClass], ...] = (
    ("ちょう", AdminClass.TOWN),
    ("まち", AdminClass.TOWN),
    ("むら", AdminClass.VILLAGE),
    ("そん", AdminClass.VILLAGE),
    ("し", AdminClass.CITY),
)

# The only reclassifications recognised: lower class -> status event label.
STATUS_TRANSITIONS: dict[tuple[AdminClass, AdminClass], EventType] = {
    (AdminClass.TOWN, AdminClass.CITY): EventType.CITY_STATUS,
    (AdminClass.VILLAGE, AdminClass.TOWN): EventType.TOWN_STATUS,
}


def split_name(name: str) -> tuple[str, AdminClass | None]:
    """Split a municipality name into (stem, class).

    '伊達市' -> ('伊達', CITY). Names without a class suffix return
    (name, None).
    """
    name = name.strip()
    for suffix, cls in _NAME_SUFFIXES:
        if name.endswith(suffix) and len(name) > len(suffix):
            return name[: -len(suffix)], cls
    return name, None


def split_phonetic(phonetic_name: str) -> tuple[str, AdminClass | None]:
    """Split a phonetic name into (stem, class). 'だてちょう' -> ('だて', TOWN)."""
    phonetic_name = phonetic_name.strip()
    for suffix, cls in _PHONETIC_SUFFIXES:
        if phonetic_name.endswith(suffix) and len(phonetic_name) > len(suffix):
            return phonetic_name[: -len(suffix)], cls
    return phonetic_name, None


def admin_class(name: str, phonetic_name: str = "") -> AdminClass | None:
    """Class from the name suffix, falling back to the phonetic suffix."""
    _, cls = split_name(name)
    if cls is None and phonetic_name:
        _, cls = split_phonetic(phonetic_name)
    return cls


# --- Base model ---


class LineageBase(BaseModel):
    """Base model with common configuration for all lineage Pydantic models."""

    model_config = {
        "populate_by_name": True,
        "frozen": True,
        "str_strip_whitespace": True,
    }
