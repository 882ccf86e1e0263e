"""
terminology/naming.py
---------------------
Derives an entity's display name from resource fields and keeps the
locale's primary name record in sync with it.
"""

from typing import Optional

from terminology.model import CodedEntity, EntityName
from terminology.outcome import ValidationError
from utils import clean_str


def derive_name(*candidates, location: str = "name") -> str:
    """First non-blank candidate, trimmed. Raises ValidationError if none."""
    for candidate in candidates:
        text = clean_str(candidate)
        if text:
            return text
    raise ValidationError(
        "Resource must provide a title, item text, or id to derive a concept name",
        location,
    )


def sync_primary_name(entity: CodedEntity, text: str, locale: str) -> bool:
    """
    Update the primary name for `locale` in place, or append one.
    Returns True when anything changed.
    """
    primary = entity.primary_name(locale)
    if primary is not None:
        if primary.name == text:
            return False
        primary.name = text
        return True
    entity.names.append(EntityName(name=text, locale=locale, preferred=True))
    return True


def display_name(entity: CodedEntity, locale: Optional[str] = None) -> str:
    if locale:
        primary = entity.primary_name(locale)
        if primary is not None:
            return primary.name
    for name in entity.names:
        if name is not None and name.name:
            return name.name
    return entity.id or ""
