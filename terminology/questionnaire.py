"""
terminology/questionnaire.py
----------------------------
Coded test  ⇄  FHIR Questionnaire with a single CHOICE item.

Import:  Questionnaire → Test / Coded entity whose answers mirror the
         item's answerOption codings (diff-based, identity preserving).
Export:  Coded entity → Questionnaire, one answerOption per answer.
"""

from terminology.answers import resolve_answer
from terminology.child_sets import collect_desired, reconcile_answers
from terminology.collaborators import Collaborators, TranslationContext, run_pass
from terminology.fhir_constants import (
    ANSWER_CODING_SYSTEM, CLASS_TEST, DATATYPE_CODED,
)
from terminology.identity import (
    adopt_external_id, find_or_create, require_classification, require_datatype,
)
from terminology.model import CodedEntity
from terminology.naming import derive_name, display_name, sync_primary_name
from terminology.outcome import NotApplicable, TranslationResult
from utils import clean_str, logger

RESOURCE_TYPE = "Questionnaire"


# ── Import ────────────────────────────────────────────────────────────────────

def to_entity(
    questionnaire: dict,
    collaborators: Collaborators,
    locale: str,
    existing: CodedEntity = None,
) -> TranslationResult:
    """Translate a Questionnaire into a coded test entity (not persisted)."""
    resource_id = clean_str(questionnaire.get("id"))
    ctx = TranslationContext(collaborators, locale, label=f"Questionnaire/{resource_id}")

    def translate() -> CodedEntity:
        source = existing if existing is not None else find_or_create(ctx, resource_id)
        entity = source.working_copy()
        adopt_external_id(entity, resource_id)

        entity.classification = require_classification(ctx, CLASS_TEST)
        entity.datatype = require_datatype(ctx, DATATYPE_CODED)
        if entity.numeric is not None:
            logger.debug(f"{ctx.label}: {entity.id} is no longer numeric, dropping its numeric facet")
            entity.numeric = None

        item = _first_item(questionnaire)
        name = derive_name(
            questionnaire.get("title"),
            item.get("text"),
            resource_id,
            location="Questionnaire.title",
        )
        sync_primary_name(entity, name, locale)

        _apply_answers(ctx, entity, item)
        return entity

    return run_pass(ctx, translate)


def _first_item(questionnaire: dict) -> dict:
    items = questionnaire.get("item") or []
    if items and isinstance(items[0], dict):
        return items[0]
    return {}


def _apply_answers(ctx: TranslationContext, entity: CodedEntity, item: dict) -> None:
    if str(item.get("type", "")).lower() != "choice":
        return
    options = item.get("answerOption") or []
    if not options:
        return

    resolved = []
    for index, option in enumerate(options):
        coding = (option or {}).get("valueCoding") if isinstance(option, dict) else None
        if not isinstance(coding, dict):
            continue
        resolved.append(resolve_answer(
            ctx, entity,
            coding.get("code"),
            coding.get("display"),
            location=f"Questionnaire.item[0].answerOption[{index}]",
        ))

    reconcile_answers(entity, collect_desired(resolved), ctx.label)


# ── Export ────────────────────────────────────────────────────────────────────

def to_resource(entity: CodedEntity, locale: str = None):
    """Coded entity → Questionnaire dict, or NotApplicable."""
    if entity is None:
        return NotApplicable("no entity")
    if entity.datatype is None or (entity.datatype.name or "").lower() != DATATYPE_CODED.lower():
        return NotApplicable(f"{entity.id} is not a coded test")

    title = display_name(entity, locale)
    options = []
    for relation in entity.answers:
        answer = relation.answer if relation is not None else None
        answer_id = clean_str(answer.id) if answer is not None else None
        if not answer_id:
            continue
        options.append({
            "valueCoding": {
                "system": ANSWER_CODING_SYSTEM,
                "code": answer_id,
                "display": display_name(answer, locale),
            }
        })

    item = {
        "linkId": entity.id or "coded-test",
        "text": title,
        "type": "choice",
    }
    if options:
        item["answerOption"] = options

    return {
        "resourceType": RESOURCE_TYPE,
        "id": entity.id,
        "status": "active",
        "title": title,
        "item": [item],
    }
