"""
terminology/observation_definition.py
-------------------------------------
Test concept  ⇄  FHIR ObservationDefinition.

permittedDataType drives the datatype:
  • Quantity         → Numeric (entity carries a NumericDetails facet)
  • CodeableConcept  → Coded   (answers from validCodedValueSet)
  • anything else    → Text

code.coding[] becomes SAME-AS mappings; quantitativeDetails and
qualifiedInterval[] become the numeric facet.
"""

from terminology.answers import resolve_answer
from terminology.child_sets import collect_desired, reconcile_answers
from terminology.collaborators import Collaborators, TranslationContext, run_pass
from terminology.fhir_constants import (
    CLASS_TEST, DATATYPE_CODED, DATATYPE_NUMERIC, DATATYPE_TEXT,
    PERMITTED_CODEABLE_CONCEPT, PERMITTED_QUANTITY, VALUE_SET_PREFIXES,
    permitted_type_for,
)
from terminology.identity import (
    adopt_external_id, find_or_create, require_classification, require_datatype,
)
from terminology.mappings import reconcile_mappings
from terminology.model import CodedEntity, NumericDetails
from terminology.naming import derive_name, display_name, sync_primary_name
from terminology.numeric import apply_numeric_details, qualified_intervals, quantitative_details
from terminology.outcome import NotApplicable, TranslationResult, UNRESOLVED_REFERENCE
from utils import clean_str, logger, strip_reference

RESOURCE_TYPE = "ObservationDefinition"


# ── Kind inference ────────────────────────────────────────────────────────────

def _permits(definition: dict, data_type: str) -> bool:
    wanted = data_type.lower()
    return any(
        isinstance(t, str) and t.strip().lower() == wanted
        for t in definition.get("permittedDataType") or []
    )


def is_numeric_definition(definition: dict) -> bool:
    return _permits(definition, PERMITTED_QUANTITY)


def is_coded_definition(definition: dict) -> bool:
    return _permits(definition, PERMITTED_CODEABLE_CONCEPT)


def _datatype_name(definition: dict, entity: CodedEntity = None) -> str:
    if (entity is not None and entity.numeric is not None) or is_numeric_definition(definition):
        return DATATYPE_NUMERIC
    if is_coded_definition(definition):
        return DATATYPE_CODED
    return DATATYPE_TEXT


# ── Import ────────────────────────────────────────────────────────────────────

def to_entity(
    definition: dict,
    collaborators: Collaborators,
    locale: str,
    existing: CodedEntity = None,
) -> TranslationResult:
    """Translate an ObservationDefinition into a test entity (not persisted)."""
    resource_id = clean_str(definition.get("id"))
    ctx = TranslationContext(collaborators, locale, label=f"ObservationDefinition/{resource_id}")
    code = definition.get("code") or {}

    def translate() -> CodedEntity:
        if existing is not None:
            source = existing
        else:
            source = find_or_create(
                ctx, resource_id,
                reuse=lambda: _find_reusable_test(ctx, definition),
                skeleton=lambda: _skeleton(definition),
            )
        entity = source.working_copy()
        adopt_external_id(entity, resource_id)

        entity.classification = require_classification(ctx, CLASS_TEST)
        entity.datatype = require_datatype(ctx, _datatype_name(definition, entity))
        if entity.datatype.name == DATATYPE_NUMERIC and entity.numeric is None:
            entity.numeric = NumericDetails()
        logger.debug(
            f"{ctx.label}: configured {entity.id} class={entity.classification.name} "
            f"datatype={entity.datatype.name}"
        )

        name = derive_name(code.get("text"), resource_id, location="ObservationDefinition.code.text")
        sync_primary_name(entity, name, locale)

        reconcile_mappings(ctx, entity, code)

        if entity.numeric is not None:
            apply_numeric_details(entity.numeric, definition)

        if is_coded_definition(definition):
            _apply_value_set_answers(ctx, entity, definition)

        return entity

    return run_pass(ctx, translate)


def _find_reusable_test(ctx: TranslationContext, definition: dict):
    """A stored test with the same name and a matching datatype, if any."""
    name = clean_str((definition.get("code") or {}).get("text")) or clean_str(definition.get("id"))
    if not name:
        return None

    candidate = ctx.entities.find_by_name(name)
    if candidate is None:
        return None

    test_class = ctx.registry.classification_by_name(CLASS_TEST)
    if test_class is None or candidate.classification != test_class:
        return None

    wanted = ctx.registry.datatype_by_name(_datatype_name(definition))
    if wanted is None or candidate.datatype != wanted:
        return None
    if wanted.name == DATATYPE_NUMERIC and candidate.numeric is None:
        return None
    return candidate


def _skeleton(definition: dict) -> CodedEntity:
    if is_numeric_definition(definition):
        return CodedEntity(numeric=NumericDetails())
    return CodedEntity()


def _apply_value_set_answers(ctx: TranslationContext, entity: CodedEntity, definition: dict) -> None:
    ref = ((definition.get("validCodedValueSet") or {}).get("reference"))
    if not clean_str(ref):
        return

    value_set_id = strip_reference(ref, VALUE_SET_PREFIXES)
    if value_set_id is None:
        ctx.warn(
            UNRESOLVED_REFERENCE,
            f"Unsupported ValueSet reference '{ref}'",
            "ObservationDefinition.validCodedValueSet",
        )
        return

    resolver = ctx.collaborators.value_sets
    value_set = resolver.resolve_value_set(value_set_id) if resolver is not None else None
    if value_set is None:
        ctx.warn(
            UNRESOLVED_REFERENCE,
            f"ValueSet '{value_set_id}' could not be resolved",
            "ObservationDefinition.validCodedValueSet",
        )
        return

    includes = (value_set.get("compose") or {}).get("include") or []
    local_includes = [
        inc for inc in includes
        if isinstance(inc, dict) and inc.get("concept") and not inc.get("system")
    ]
    if not local_includes:
        logger.debug(f"{ctx.label}: ValueSet '{value_set_id}' declares no local answers")
        return

    resolved = []
    for i, include in enumerate(local_includes):
        for j, concept_ref in enumerate(include["concept"]):
            if not isinstance(concept_ref, dict):
                continue
            resolved.append(resolve_answer(
                ctx, entity,
                concept_ref.get("code"),
                concept_ref.get("display"),
                location=f"ValueSet/{value_set_id}.compose.include[{i}].concept[{j}]",
            ))

    reconcile_answers(entity, collect_desired(resolved), ctx.label)


# ── Export ────────────────────────────────────────────────────────────────────

def to_resource(entity: CodedEntity, locale: str = None):
    """Test entity → ObservationDefinition dict, or NotApplicable."""
    if entity is None:
        return NotApplicable("no entity")
    if entity.classification is None or entity.classification.name != CLASS_TEST:
        return NotApplicable(f"{entity.id} is not a test")

    text = display_name(entity, locale)
    code = {"text": text}
    codings = [
        {
            "system": m.term.source.uri,
            "code": m.term.code,
            "display": m.term.name or text,
        }
        for m in entity.mappings
        if m is not None and m.term is not None and m.term.source is not None
    ]
    if codings:
        code["coding"] = codings

    definition = {
        "resourceType": RESOURCE_TYPE,
        "id": entity.id,
        "code": code,
    }

    permitted = permitted_type_for(entity.datatype.name if entity.datatype else "")
    if permitted:
        definition["permittedDataType"] = [permitted]

    if entity.numeric is not None:
        details = quantitative_details(entity.numeric)
        if details:
            definition["quantitativeDetails"] = details
        intervals = qualified_intervals(entity.numeric)
        if intervals:
            definition["qualifiedInterval"] = intervals

    return definition
