"""
terminology/mappings.py
-----------------------
Turns code.coding[] (system, code) pairs into SAME-AS reference-term
mappings on an entity.

A given (source, code) may be SAME-AS on at most one entity in the whole
store, and an entity holds at most one SAME-AS mapping per source.
Collisions are skipped with a MappingConflict warning. Mappings are only
ever added here, never retracted.
"""

from terminology.collaborators import TranslationContext
from terminology.fhir_constants import MAP_TYPE_SAME_AS, is_same_as
from terminology.identity import require_mapping_kind
from terminology.model import CodedEntity, MappingRelation, ReferenceTerm, same_entity
from terminology.outcome import MAPPING_CONFLICT
from utils import clean_str, logger


def reconcile_mappings(ctx: TranslationContext, entity: CodedEntity, code: dict) -> list:
    """
    Apply the codings of a CodeableConcept to `entity`. Returns the
    MappingRelations that were added.
    """
    if not code:
        return []

    added = []
    code_text = clean_str(code.get("text"))

    for index, coding in enumerate(code.get("coding") or []):
        if not isinstance(coding, dict):
            continue
        location = f"code.coding[{index}]"
        system = clean_str(coding.get("system"))
        term_code = clean_str(coding.get("code"))
        if not system or not term_code:
            continue

        source = ctx.registry.source_by_uri(system)
        if source is None:
            logger.debug(f"{ctx.label}: no concept source for system '{system}', skipping")
            continue

        has_same, has_conflicting = _same_as_on_entity(entity, source, term_code)
        if has_same:
            continue
        if has_conflicting:
            message = (
                f"Skipping mapping code '{term_code}' from system '{system}' for {ctx.label} "
                f"because the concept already has a different SAME-AS mapping for that source"
            )
            logger.warning(message)
            ctx.warn(MAPPING_CONFLICT, message, location)
            continue

        holder = ctx.collaborators.same_as.entity_holding_same_as(source, term_code)
        if holder is not None and not same_entity(holder, entity):
            message = (
                f"Skipping mapping code '{term_code}' from system '{system}' for {ctx.label} "
                f"because it is already mapped as SAME-AS to a different concept (uuid={holder.id})"
            )
            logger.warning(message)
            ctx.warn(MAPPING_CONFLICT, message, location)
            continue

        kind = require_mapping_kind(ctx, MAP_TYPE_SAME_AS)
        term = ReferenceTerm(
            source=source,
            code=term_code,
            name=clean_str(coding.get("display")) or code_text,
        )
        mapping = MappingRelation(term=term, kind=kind)
        entity.mappings.append(mapping)
        added.append(mapping)
        logger.debug(f"{ctx.label}: mapped {entity.id} SAME-AS {source.name}:{term_code}")

    return added


def _same_as_on_entity(entity: CodedEntity, source, term_code: str) -> tuple:
    has_same = has_conflicting = False
    for mapping in entity.mappings:
        if mapping is None or mapping.term is None or mapping.term.source is None:
            continue
        if not _same_source(mapping.term.source, source):
            continue
        if not is_same_as(mapping.kind):
            continue
        existing = mapping.term.code or ""
        if existing.lower() == term_code.lower():
            has_same = True
        else:
            has_conflicting = True
    return has_same, has_conflicting


def _same_source(a, b) -> bool:
    if a.pk is not None and b.pk is not None:
        return a.pk == b.pk
    return a.uri == b.uri
