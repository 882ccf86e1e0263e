"""
terminology/collaborators.py
----------------------------
Narrow capabilities the translators consume, and the state of one pass.

The translators never construct these. ConceptStore (database.py) provides
all of them; tests substitute small in-memory fakes per capability.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol, runtime_checkable

from terminology.model import (
    Classification, CodedEntity, Datatype, MappingKind, Source,
)
from terminology.outcome import TranslationError, TranslationResult, issue, log_result


# ── Capabilities ──────────────────────────────────────────────────────────────

@runtime_checkable
class EntityLookup(Protocol):
    def find_by_id(self, entity_id: str) -> Optional[CodedEntity]: ...

    def find_by_name(self, name: str) -> Optional[CodedEntity]: ...


@runtime_checkable
class EntityWriter(Protocol):
    def save(self, entity: CodedEntity) -> CodedEntity: ...


@runtime_checkable
class RegistryLookup(Protocol):
    def classification_by_name(self, name: str) -> Optional[Classification]: ...

    def datatype_by_name(self, name: str) -> Optional[Datatype]: ...

    def mapping_kind_by_name(self, name: str) -> Optional[MappingKind]: ...

    def source_by_uri(self, uri: str) -> Optional[Source]: ...


@runtime_checkable
class SameAsIndex(Protocol):
    def entity_holding_same_as(self, source: Source, code: str) -> Optional[CodedEntity]: ...


@runtime_checkable
class ValueSetResolver(Protocol):
    def resolve_value_set(self, local_id: str) -> Optional[dict]: ...


@dataclass
class Collaborators:
    entities: EntityLookup
    registry: RegistryLookup
    same_as: SameAsIndex
    value_sets: Optional[ValueSetResolver] = None

    @classmethod
    def from_store(cls, store) -> "Collaborators":
        """One object backing every capability, e.g. ConceptStore."""
        return cls(entities=store, registry=store, same_as=store, value_sets=store)


# ── Pass state ────────────────────────────────────────────────────────────────

@dataclass
class TranslationContext:
    """
    Everything one translation pass threads through the resolvers: the
    collaborators, the locale, accumulated warnings and child entities
    created but not yet persisted.
    """
    collaborators: Collaborators
    locale: str
    label: str = ""
    warnings: list = field(default_factory=list)
    created: dict = field(default_factory=dict)

    @property
    def entities(self) -> EntityLookup:
        return self.collaborators.entities

    @property
    def registry(self) -> RegistryLookup:
        return self.collaborators.registry

    def warn(self, kind: str, message: str, location: str = "") -> None:
        self.warnings.append(issue("warning", kind, message, location))

    def pending(self, entity_id: str) -> Optional[CodedEntity]:
        return self.created.get(entity_id)

    def pending_by_name(self, name: str) -> Optional[CodedEntity]:
        for entity in self.created.values():
            if any(n.name == name for n in entity.names):
                return entity
        return None

    def register_created(self, entity: CodedEntity) -> None:
        self.created[entity.id] = entity


def run_pass(ctx: TranslationContext, translate: Callable[[], CodedEntity]) -> TranslationResult:
    """
    Run one translation and wrap it into a TranslationResult. Fatal
    translation errors become result.error; store failures propagate.
    """
    try:
        entity = translate()
    except TranslationError as e:
        result = TranslationResult(warnings=list(ctx.warnings), error=e)
    else:
        result = TranslationResult(
            entity=entity,
            created=list(ctx.created.values()),
            warnings=list(ctx.warnings),
        )
    log_result(ctx.label, result)
    return result
