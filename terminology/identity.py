"""
terminology/identity.py
-----------------------
Identity and classification resolution for an import pass.

Identity rules for an external id:
  • entity has no id yet            → adopt the external id
  • entity has an id, not persisted → the external id wins
  • entity is persisted             → id is immutable, mismatch ignored

Registry records (classification, datatype, mapping kind) must be
provisioned; a missing record is an environment problem and aborts the
pass with MissingReferenceData.
"""

from typing import Callable, Optional

from terminology.collaborators import TranslationContext
from terminology.model import CodedEntity
from terminology.outcome import MissingReferenceData
from utils import clean_str, generate_id, logger


# ── Identity ──────────────────────────────────────────────────────────────────

def find_or_create(
    ctx: TranslationContext,
    external_id: Optional[str],
    reuse: Optional[Callable[[], Optional[CodedEntity]]] = None,
    skeleton: Optional[Callable[[], CodedEntity]] = None,
) -> CodedEntity:
    """
    Look the entity up by id; otherwise try `reuse` (e.g. a by-name match);
    otherwise build a skeleton seeded with the external id, or with a
    generated uuid when the resource carries none.
    """
    entity_id = clean_str(external_id)
    if entity_id:
        existing = ctx.entities.find_by_id(entity_id)
        if existing is not None:
            return existing

    if reuse is not None:
        reused = reuse()
        if reused is not None:
            logger.debug(f"{ctx.label}: reusing entity {reused.id} matched by name")
            return reused

    entity = skeleton() if skeleton is not None else CodedEntity()
    if entity_id:
        entity.id = entity_id
    elif not entity.id:
        entity.id = generate_id()
        logger.debug(f"{ctx.label}: no external id, generated {entity.id}")
    return entity


def adopt_external_id(entity: CodedEntity, external_id: Optional[str]) -> None:
    entity_id = clean_str(external_id)
    if not entity_id:
        return
    if entity.id is None:
        entity.id = entity_id
    elif not entity.persisted and entity.id != entity_id:
        entity.id = entity_id
    elif entity.persisted and entity.id != entity_id:
        logger.debug(
            f"Ignoring external id '{entity_id}' for persisted entity {entity.id}"
        )


# ── Classification / datatype / mapping kind ─────────────────────────────────

def require_classification(ctx: TranslationContext, name: str):
    record = ctx.registry.classification_by_name(name)
    if record is None:
        raise MissingReferenceData(
            f"Concept class '{name}' not found; cannot translate {ctx.label}",
            "classification",
        )
    return record


def require_datatype(ctx: TranslationContext, name: str):
    record = ctx.registry.datatype_by_name(name)
    if record is None:
        raise MissingReferenceData(
            f"Concept datatype '{name}' not found; cannot translate {ctx.label}",
            "datatype",
        )
    return record


def require_mapping_kind(ctx: TranslationContext, name: str):
    record = ctx.registry.mapping_kind_by_name(name)
    if record is None:
        raise MissingReferenceData(
            f"Concept map type '{name}' not found; cannot create mapping for {ctx.label}",
            "mapping",
        )
    return record
