"""
terminology/child_sets.py
-------------------------
Diff-based synchronisation of a child relation list (answers or set
members) with the set of children a resource declares.

  1. desired  — ids of every reference that resolved to a usable entity
  2. remove   — current relations whose target id is not desired
                (relations to targets without an id are left alone)
  3. current  — ids still present after removal
  4. add      — one new relation per desired id not yet current

Relations whose target id is desired both before and after are never
recreated, so running the same input twice changes nothing.
"""

from typing import Callable, Iterable, Optional

from terminology.model import AnswerRelation, CodedEntity, MemberRelation
from utils import logger


def collect_desired(resolved: Iterable[Optional[CodedEntity]]) -> dict:
    """Ordered {id: entity} of resolved children, first occurrence wins."""
    desired = {}
    for child in resolved:
        if child is None or not child.id:
            continue
        desired.setdefault(child.id, child)
    return desired


def reconcile_children(
    relations: list,
    desired: dict,
    target_of: Callable[[object], Optional[CodedEntity]],
    make_relation: Callable[[CodedEntity], object],
) -> tuple:
    """
    Bring `relations` (mutated in place) in line with `desired`.
    Returns (removed, added) relation lists.
    """
    def stale(relation) -> bool:
        target_id = _target_id(relation, target_of)
        return target_id is not None and target_id not in desired

    removed = [r for r in relations if stale(r)]
    if removed:
        relations[:] = [r for r in relations if not stale(r)]

    current = {_target_id(r, target_of) for r in relations}
    current.discard(None)

    added = []
    for child_id, child in desired.items():
        if child_id in current:
            continue
        relation = make_relation(child)
        relations.append(relation)
        added.append(relation)
        current.add(child_id)

    return removed, added


def reconcile_answers(entity: CodedEntity, desired: dict, label: str = "") -> tuple:
    removed, added = reconcile_children(
        entity.answers, desired,
        target_of=lambda r: r.answer,
        make_relation=lambda child: AnswerRelation(answer=child),
    )
    logger.debug(
        f"{label}: answers for {entity.id} desired={len(desired)} "
        f"removed={[r.answer.id for r in removed]} added={[r.answer.id for r in added]}"
    )
    return removed, added


def reconcile_members(entity: CodedEntity, desired: dict, label: str = "") -> tuple:
    removed, added = reconcile_children(
        entity.members, desired,
        target_of=lambda r: r.member,
        make_relation=lambda child: MemberRelation(member=child),
    )
    logger.debug(
        f"{label}: members for {entity.id} desired={len(desired)} "
        f"removed={[r.member.id for r in removed]} added={[r.member.id for r in added]}"
    )
    return removed, added


def _target_id(relation, target_of):
    if relation is None:
        return None
    target = target_of(relation)
    if target is None:
        return None
    return target.id or None
