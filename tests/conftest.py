"""
tests/conftest.py
-----------------
In-memory collaborator fakes shared by the translator tests.
"""

import sys
import os
import itertools
import pytest

# Make sure project root is in path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from terminology.collaborators import Collaborators
from terminology.fhir_constants import (
    SEED_CLASSES, SEED_DATATYPES, SEED_MAP_TYPES, SEED_SOURCES, is_same_as,
)
from terminology.model import Classification, Datatype, MappingKind, Source


class FakeStore:
    """Dict-backed stand-in for ConceptStore; counts every save."""

    def __init__(self, seeded: bool = True):
        self._pks = itertools.count(1)
        self.entities = {}
        self.saves = []
        self.value_sets = {}
        self.classes, self.datatypes, self.map_types, self.sources = {}, {}, {}, {}
        if seeded:
            self.classes    = {n: Classification(n, u, next(self._pks)) for n, u in SEED_CLASSES.items()}
            self.datatypes  = {n: Datatype(n, u, next(self._pks)) for n, u in SEED_DATATYPES.items()}
            self.map_types  = {n: MappingKind(n, u, next(self._pks)) for n, u in SEED_MAP_TYPES.items()}
            self.sources    = {uri: Source(n, uri, next(self._pks)) for n, uri in SEED_SOURCES.items()}

    # EntityLookup
    def find_by_id(self, entity_id):
        return self.entities.get(entity_id)

    def find_by_name(self, name):
        for entity in self.entities.values():
            if any(n.name == name for n in entity.names):
                return entity
        return None

    # EntityWriter
    def save(self, entity):
        if entity.pk is None:
            entity.pk = next(self._pks)
        self.entities[entity.id] = entity
        self.saves.append(entity.id)
        return entity

    # RegistryLookup
    def classification_by_name(self, name):
        return self.classes.get(name)

    def datatype_by_name(self, name):
        return self.datatypes.get(name)

    def mapping_kind_by_name(self, name):
        return self.map_types.get(name)

    def source_by_uri(self, uri):
        return self.sources.get(uri)

    # SameAsIndex
    def entity_holding_same_as(self, source, code):
        for entity in self.entities.values():
            for m in entity.mappings:
                if (
                    is_same_as(m.kind)
                    and m.term.source.uri == source.uri
                    and m.term.code.lower() == code.lower()
                ):
                    return entity
        return None

    # ValueSetResolver
    def resolve_value_set(self, local_id):
        return self.value_sets.get(local_id)

    # helpers
    def persist(self, result):
        """Save a successful TranslationResult the way the service does."""
        assert result.ok, result.error
        for child in result.created:
            self.save(child)
        return self.save(result.entity)


@pytest.fixture
def store():
    return FakeStore()

@pytest.fixture
def bare_store():
    return FakeStore(seeded=False)

@pytest.fixture
def collab(store):
    return Collaborators.from_store(store)

@pytest.fixture
def bare_collab(bare_store):
    return Collaborators.from_store(bare_store)
