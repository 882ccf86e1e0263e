"""
terminology/answers.py
----------------------
Resolves the child entities a resource references.

Answers:  id → exact name (display, else the code) → new Misc / N/A entity.
Members:  id only. A panel never invents the tests it groups.

A child that resolves to the entity being reconciled is dropped.
"""

from typing import Optional

from terminology.collaborators import TranslationContext
from terminology.fhir_constants import CLASS_MISC, DATATYPE_NA
from terminology.identity import require_classification, require_datatype
from terminology.model import CodedEntity, EntityName, same_entity
from terminology.outcome import UNRESOLVED_REFERENCE
from utils import clean_str, logger


def resolve_answer(
    ctx: TranslationContext,
    owner: CodedEntity,
    code: Optional[str],
    display: Optional[str] = None,
    location: str = "",
) -> Optional[CodedEntity]:
    code = clean_str(code)
    if not code:
        ctx.warn(UNRESOLVED_REFERENCE, "Answer reference has no code", location)
        return None
    if code == owner.id:
        return _drop_self(ctx, owner, owner, location)

    answer = ctx.pending(code) or ctx.entities.find_by_id(code)

    if answer is None:
        label = clean_str(display) or code
        answer = ctx.pending_by_name(label) or ctx.entities.find_by_name(label)
        if answer is not None:
            logger.debug(
                f"{ctx.label}: reused answer {answer.id} by name '{label}' for {owner.id}"
            )
        else:
            answer = _create_answer(ctx, code, label)
            logger.debug(
                f"{ctx.label}: created answer {answer.id} '{label}' for {owner.id}"
            )

    return _drop_self(ctx, owner, answer, location)


def resolve_member(
    ctx: TranslationContext,
    owner: CodedEntity,
    member_id: Optional[str],
    location: str = "",
) -> Optional[CodedEntity]:
    member_id = clean_str(member_id)
    if not member_id:
        ctx.warn(UNRESOLVED_REFERENCE, "Member reference has no id", location)
        return None

    member = ctx.entities.find_by_id(member_id)
    if member is None:
        ctx.warn(
            UNRESOLVED_REFERENCE,
            f"Panel member '{member_id}' does not exist",
            location,
        )
        return None

    return _drop_self(ctx, owner, member, location)


def _create_answer(ctx: TranslationContext, code: str, label: str) -> CodedEntity:
    answer = CodedEntity(
        id=code,
        classification=require_classification(ctx, CLASS_MISC),
        datatype=require_datatype(ctx, DATATYPE_NA),
        names=[EntityName(name=label, locale=ctx.locale, preferred=True)],
    )
    ctx.register_created(answer)
    return answer


def _drop_self(ctx, owner, child, location):
    if same_entity(owner, child):
        ctx.warn(
            UNRESOLVED_REFERENCE,
            f"Entity {owner.id} cannot reference itself",
            location,
        )
        return None
    return child
