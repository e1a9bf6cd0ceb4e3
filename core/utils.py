"""
Small shared helpers: entity ids and sequence flattening.
"""
# core/utils.py
from __future__ import annotations

import uuid
from typing import Iterable, List, TypeVar

T = TypeVar("T")


def new_entity_id(prefix: str = "") -> str:
    """
    Short random id (12 hex chars) for newly created entities.
    Callers must treat ids as opaque.
    """
    eid = uuid.uuid4().hex[:12]
    return f"{prefix}{eid}" if prefix else eid


def flatten(groups: Iterable[Iterable[T]]) -> List[T]:
    return [item for group in groups for item in group]
