"""
terminology/panel.py
--------------------
Lab panel (LabSet concept set)  ⇄  FHIR List of ObservationDefinition refs.

Members are looked up by id only. A panel groups tests that already exist;
a reference to an unknown test is dropped with an UnresolvedReference
warning, never created.
"""

from terminology.answers import resolve_member
from terminology.child_sets import collect_desired, reconcile_members
from terminology.collaborators import Collaborators, TranslationContext, run_pass
from terminology.fhir_constants import CLASS_LABSET, DATATYPE_NA, OBSERVATION_DEF_PREFIXES
from terminology.identity import (
    adopt_external_id, find_or_create, require_classification, require_datatype,
)
from terminology.model import CodedEntity
from terminology.naming import derive_name, display_name, sync_primary_name
from terminology.outcome import NotApplicable, TranslationResult, UNRESOLVED_REFERENCE
from utils import clean_str, strip_reference

RESOURCE_TYPE = "List"


# ── Import ────────────────────────────────────────────────────────────────────

def to_entity(
    panel: dict,
    collaborators: Collaborators,
    locale: str,
    existing: CodedEntity = None,
) -> TranslationResult:
    """Translate a List into a LabSet panel entity (not persisted)."""
    resource_id = clean_str(panel.get("id"))
    ctx = TranslationContext(collaborators, locale, label=f"List/{resource_id}")

    def translate() -> CodedEntity:
        source = existing if existing is not None else find_or_create(ctx, resource_id)
        entity = source.working_copy()
        adopt_external_id(entity, resource_id)

        entity.is_set = True
        entity.classification = require_classification(ctx, CLASS_LABSET)
        if entity.datatype is None:
            entity.datatype = require_datatype(ctx, DATATYPE_NA)

        name = derive_name(panel.get("title"), resource_id, location="List.title")
        sync_primary_name(entity, name, locale)

        _apply_members(ctx, entity, panel)
        return entity

    return run_pass(ctx, translate)


def _apply_members(ctx: TranslationContext, entity: CodedEntity, panel: dict) -> None:
    resolved = []
    for index, entry in enumerate(panel.get("entry") or []):
        location = f"List.entry[{index}].item"
        item = entry.get("item") if isinstance(entry, dict) else None
        reference = item.get("reference") if isinstance(item, dict) else None

        member_id = strip_reference(reference, OBSERVATION_DEF_PREFIXES)
        if member_id is None:
            ctx.warn(
                UNRESOLVED_REFERENCE,
                f"Unsupported panel member reference '{reference}'",
                location,
            )
            continue
        resolved.append(resolve_member(ctx, entity, member_id, location))

    # always reconciled: an empty entry list clears the panel
    reconcile_members(entity, collect_desired(resolved), ctx.label)


# ── Export ────────────────────────────────────────────────────────────────────

def to_resource(entity: CodedEntity, locale: str = None):
    """LabSet panel → List dict, or NotApplicable."""
    if entity is None:
        return NotApplicable("no entity")
    if not entity.is_set:
        return NotApplicable(f"{entity.id} is not a concept set")
    if entity.classification is None or entity.classification.name != CLASS_LABSET:
        return NotApplicable(f"{entity.id} is not a lab panel")

    entries = []
    for relation in entity.members:
        member = relation.member if relation is not None else None
        member_id = clean_str(member.id) if member is not None else None
        if member_id:
            entries.append({"item": {"reference": f"ObservationDefinition/{member_id}"}})

    resource = {
        "resourceType": RESOURCE_TYPE,
        "id": entity.id,
        "title": display_name(entity, locale),
        "status": "current",
        "mode": "working",
    }
    if entries:
        resource["entry"] = entries
    return resource
