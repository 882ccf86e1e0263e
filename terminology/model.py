"""
terminology/model.py
--------------------
In-memory shape of the coded-terminology graph.

A CodedEntity is a test, panel or answer concept. Its child relations
(answers, set members, reference-term mappings) are plain objects compared
by identity, so a relation that survives a reconciliation pass is the very
same object before and after it.

Numeric tests carry an optional NumericDetails facet instead of being a
separate entity type.
"""

import copy
from dataclasses import dataclass, field, replace
from typing import Optional


# ── Registry records ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Classification:
    name: str
    uuid: Optional[str] = None
    pk: Optional[int] = None


@dataclass(frozen=True)
class Datatype:
    name: str
    uuid: Optional[str] = None
    pk: Optional[int] = None


@dataclass(frozen=True)
class MappingKind:
    name: str
    uuid: Optional[str] = None
    pk: Optional[int] = None


@dataclass(frozen=True)
class Source:
    name: str
    uri: str
    pk: Optional[int] = None


# ── Entity parts ──────────────────────────────────────────────────────────────

@dataclass(eq=False)
class EntityName:
    name: str
    locale: str
    preferred: bool = True
    pk: Optional[int] = None


@dataclass(eq=False)
class ReferenceTerm:
    source: Source
    code: str
    name: Optional[str] = None


@dataclass(eq=False)
class AnswerRelation:
    answer: "CodedEntity"
    pk: Optional[int] = None

    @property
    def target(self) -> "CodedEntity":
        return self.answer


@dataclass(eq=False)
class MemberRelation:
    member: "CodedEntity"
    pk: Optional[int] = None

    @property
    def target(self) -> "CodedEntity":
        return self.member


@dataclass(eq=False)
class MappingRelation:
    term: ReferenceTerm
    kind: MappingKind
    pk: Optional[int] = None


@dataclass
class NumericDetails:
    units: Optional[str] = None
    allow_fractional: Optional[bool] = None
    low_normal: Optional[float] = None
    hi_normal: Optional[float] = None
    low_critical: Optional[float] = None
    hi_critical: Optional[float] = None
    low_absolute: Optional[float] = None
    hi_absolute: Optional[float] = None


# ── Entity ────────────────────────────────────────────────────────────────────

@dataclass(eq=False)
class CodedEntity:
    """
    A node of the terminology graph.

    `id` is the globally unique external identifier. `pk` is assigned by the
    store on first save; an entity with a pk is durably persisted and its id
    is immutable from then on.
    """
    id: Optional[str] = None
    pk: Optional[int] = None
    classification: Optional[Classification] = None
    datatype: Optional[Datatype] = None
    is_set: bool = False
    names: list = field(default_factory=list)
    answers: list = field(default_factory=list)
    members: list = field(default_factory=list)
    mappings: list = field(default_factory=list)
    numeric: Optional[NumericDetails] = None

    @property
    def persisted(self) -> bool:
        return self.pk is not None

    def primary_name(self, locale: str) -> Optional[EntityName]:
        """Preferred name for the locale, else any name in that locale."""
        in_locale = [n for n in self.names if n is not None and n.locale == locale]
        for candidate in in_locale:
            if candidate.preferred:
                return candidate
        return in_locale[0] if in_locale else None

    def working_copy(self) -> "CodedEntity":
        """
        Shallow copy for one translation pass. Relation lists are new lists
        holding the same relation objects; names and the numeric facet are
        copied so in-place edits never leak into the caller's entity.
        """
        clone = copy.copy(self)
        clone.names = [replace(n) for n in self.names]
        clone.answers = list(self.answers)
        clone.members = list(self.members)
        clone.mappings = list(self.mappings)
        clone.numeric = replace(self.numeric) if self.numeric is not None else None
        return clone


def same_entity(a: Optional[CodedEntity], b: Optional[CodedEntity]) -> bool:
    """Identity check used for self-reference and uniqueness guards."""
    if a is None or b is None:
        return False
    if a is b:
        return True
    if a.pk is not None and a.pk == b.pk:
        return True
    return bool(a.id) and a.id == b.id
