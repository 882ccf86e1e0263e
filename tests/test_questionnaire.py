"""
tests/test_questionnaire.py
---------------------------
Choice-questionnaire import / export, including the answer reconciliation
scenarios and the idempotence / identity-preservation properties.
Run with:  python -m pytest tests/ -v
"""

import sys
import os
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from terminology import observation_definition, questionnaire
from terminology.model import AnswerRelation, CodedEntity, EntityName, NumericDetails
from terminology.outcome import (
    MISSING_REFERENCE_DATA, NotApplicable, UNRESOLVED_REFERENCE, VALIDATION_ERROR,
)
from fhir_samples import observation_definition as make_observation_definition
from fhir_samples import questionnaire as make_questionnaire

GLUCOSE = make_questionnaire(options=[("A1", "Normal"), ("A2", "High")])


def _answer_ids(entity):
    return [r.answer.id for r in entity.answers]


# ── Import: fresh entity ──────────────────────────────────────────────────────

class TestQuestionnaireImport:

    def test_fresh_import_builds_coded_test(self, collab):
        result = questionnaire.to_entity(GLUCOSE, collab, "en")
        assert result.ok
        entity = result.entity
        assert entity.id == "q-glucose"
        assert entity.classification.name == "Test"
        assert entity.datatype.name == "Coded"
        assert [n.name for n in entity.names] == ["Glucose Panel"]

    def test_fresh_import_creates_misc_answers(self, collab):
        result = questionnaire.to_entity(GLUCOSE, collab, "en")
        assert _answer_ids(result.entity) == ["A1", "A2"]
        assert [c.id for c in result.created] == ["A1", "A2"]
        for child in result.created:
            assert child.classification.name == "Misc"
            assert child.datatype.name == "N/A"
        assert [c.names[0].name for c in result.created] == ["Normal", "High"]

    def test_import_does_not_persist(self, collab, store):
        questionnaire.to_entity(GLUCOSE, collab, "en")
        assert store.saves == []

    def test_name_falls_back_to_item_text(self, collab):
        resource = make_questionnaire(title=None, item_text="Urine colour")
        result = questionnaire.to_entity(resource, collab, "en")
        assert result.entity.names[0].name == "Urine colour"

    def test_name_falls_back_to_id(self, collab):
        resource = make_questionnaire(qid="q-bare", title="  ")
        result = questionnaire.to_entity(resource, collab, "en")
        assert result.entity.names[0].name == "q-bare"

    def test_name_recorded_in_given_locale(self, collab):
        result = questionnaire.to_entity(GLUCOSE, collab, "fr")
        assert result.entity.names[0].locale == "fr"
        assert result.created[0].names[0].locale == "fr"

    def test_no_name_source_is_validation_error(self, collab):
        resource = {"resourceType": "Questionnaire", "item": [{"type": "choice"}]}
        result = questionnaire.to_entity(resource, collab, "en")
        assert not result.ok
        assert result.entity is None
        assert result.error.kind == VALIDATION_ERROR

    def test_missing_registry_is_fatal(self, bare_collab):
        result = questionnaire.to_entity(GLUCOSE, bare_collab, "en")
        assert not result.ok
        assert result.error.kind == MISSING_REFERENCE_DATA
        assert result.operation_outcome()["issue"][0]["severity"] == "error"

    def test_answer_reused_by_display_name(self, collab, store):
        store.save(CodedEntity(id="x-normal", names=[EntityName("Normal", "en")]))
        resource = make_questionnaire(options=[("A9", "Normal")])
        result = questionnaire.to_entity(resource, collab, "en")
        assert _answer_ids(result.entity) == ["x-normal"]
        assert result.created == []

    def test_repeated_new_code_created_once(self, collab):
        resource = make_questionnaire(options=[("N1", "Trace"), ("N1", "Trace")])
        result = questionnaire.to_entity(resource, collab, "en")
        assert _answer_ids(result.entity) == ["N1"]
        assert len(result.created) == 1

    def test_self_reference_dropped_with_warning(self, collab):
        resource = make_questionnaire(options=[("q-glucose", "Itself"), ("A1", "Normal")])
        result = questionnaire.to_entity(resource, collab, "en")
        assert result.ok
        assert _answer_ids(result.entity) == ["A1"]
        assert UNRESOLVED_REFERENCE in result.warning_kinds()
        assert [c.id for c in result.created] == ["A1"]

    def test_blank_answer_code_warns(self, collab):
        resource = make_questionnaire(options=[("  ", "Blank")])
        result = questionnaire.to_entity(resource, collab, "en")
        assert result.entity.answers == []
        assert result.warning_kinds() == [UNRESOLVED_REFERENCE]


# ── Import: reconciling against a stored entity ──────────────────────────────

class TestQuestionnaireReconciliation:

    @pytest.fixture
    def stored(self, collab, store):
        store.persist(questionnaire.to_entity(GLUCOSE, collab, "en"))
        return store.find_by_id("q-glucose")

    def test_reimport_with_fewer_options_removes_answer(self, collab, store, stored):
        a1_relation = stored.answers[0]
        resource = make_questionnaire(options=[("A1", None)])
        result = questionnaire.to_entity(resource, collab, "en", existing=stored)
        assert _answer_ids(result.entity) == ["A1"]
        assert result.entity.answers[0] is a1_relation

    def test_reimport_leaves_caller_entity_untouched(self, collab, stored):
        resource = make_questionnaire(title="Renamed", options=[("A1", None)])
        questionnaire.to_entity(resource, collab, "en", existing=stored)
        assert _answer_ids(stored) == ["A1", "A2"]
        assert stored.names[0].name == "Glucose Panel"

    def test_same_input_twice_is_idempotent(self, collab, stored):
        before = list(stored.answers)
        result = questionnaire.to_entity(GLUCOSE, collab, "en", existing=stored)
        assert result.created == []
        assert len(result.entity.answers) == 2
        assert all(a is b for a, b in zip(result.entity.answers, before))

    def test_lookup_by_id_finds_stored_entity(self, collab, stored):
        result = questionnaire.to_entity(GLUCOSE, collab, "en")
        assert result.entity.pk == stored.pk
        assert result.created == []

    def test_item_without_options_keeps_answers(self, collab, stored):
        resource = make_questionnaire(options=[])
        result = questionnaire.to_entity(resource, collab, "en", existing=stored)
        assert _answer_ids(result.entity) == ["A1", "A2"]

    def test_non_choice_item_keeps_answers(self, collab, stored):
        resource = make_questionnaire(options=[("A3", "Low")], item_type="string")
        result = questionnaire.to_entity(resource, collab, "en", existing=stored)
        assert _answer_ids(result.entity) == ["A1", "A2"]

    def test_persisted_id_is_immutable(self, collab, stored):
        resource = make_questionnaire(qid="another-id", options=[("A1", None)])
        result = questionnaire.to_entity(resource, collab, "en", existing=stored)
        assert result.entity.id == "q-glucose"

    def test_coded_import_drops_numeric_facet(self, collab, store):
        numeric_test = store.save(CodedEntity(
            id="q-glucose",
            classification=store.classes["Test"],
            datatype=store.datatypes["Numeric"],
            names=[EntityName("Glucose Panel", "en")],
            numeric=NumericDetails(units="mg/dL", low_normal=70.0, hi_normal=110.0),
        ))
        result = questionnaire.to_entity(GLUCOSE, collab, "en", existing=numeric_test)
        assert result.entity.datatype.name == "Coded"
        assert result.entity.numeric is None
        assert numeric_test.numeric.units == "mg/dL"

        store.persist(result)
        redefined = observation_definition.to_entity(
            make_observation_definition(oid="q-glucose", text="Glucose Panel", permitted=["CodeableConcept"]),
            collab, "en",
        ).entity
        assert redefined.datatype.name == "Coded"
        exported = observation_definition.to_resource(redefined, "en")
        assert exported["permittedDataType"] == ["CodeableConcept"]
        assert "quantitativeDetails" not in exported
        assert "qualifiedInterval" not in exported

    def test_unpersisted_entity_adopts_external_id(self, collab):
        draft = CodedEntity(id="draft")
        result = questionnaire.to_entity(GLUCOSE, collab, "en", existing=draft)
        assert result.entity.id == "q-glucose"
        assert draft.id == "draft"


# ── Export ────────────────────────────────────────────────────────────────────

class TestQuestionnaireExport:

    def test_export_coded_entity(self, collab):
        entity = questionnaire.to_entity(GLUCOSE, collab, "en").entity
        resource = questionnaire.to_resource(entity, "en")
        assert resource["resourceType"] == "Questionnaire"
        assert resource["id"] == "q-glucose"
        assert resource["status"] == "active"
        assert resource["title"] == "Glucose Panel"
        item = resource["item"][0]
        assert item["type"] == "choice"
        assert item["linkId"] == "q-glucose"
        codings = [o["valueCoding"] for o in item["answerOption"]]
        assert [c["code"] for c in codings] == ["A1", "A2"]
        assert [c["display"] for c in codings] == ["Normal", "High"]
        assert all(c["system"] == "urn:uuid" for c in codings)

    def test_export_skips_answers_without_id(self, store):
        entity = CodedEntity(
            id="q1",
            datatype=store.datatypes["Coded"],
            names=[EntityName("Q", "en")],
            answers=[AnswerRelation(answer=CodedEntity())],
        )
        item = questionnaire.to_resource(entity, "en")["item"][0]
        assert "answerOption" not in item

    def test_non_coded_entity_not_applicable(self, store):
        entity = CodedEntity(id="t1", datatype=store.datatypes["Numeric"])
        assert isinstance(questionnaire.to_resource(entity, "en"), NotApplicable)

    def test_export_then_import_keeps_answers(self, collab, store):
        store.persist(questionnaire.to_entity(GLUCOSE, collab, "en"))
        stored = store.find_by_id("q-glucose")
        exported = questionnaire.to_resource(stored, "en")
        result = questionnaire.to_entity(exported, collab, "en", existing=stored)
        assert _answer_ids(result.entity) == ["A1", "A2"]
        assert result.created == []
