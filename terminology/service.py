"""
terminology/service.py
----------------------
Read / create / update of FHIR resources against the concept store.

One import pass per write. A successful pass is persisted in order:
newly created child entities first, then the entity itself. A fatal
pass persists nothing and raises TranslationFailed.

Update is an upsert: when the id is unknown the resource is created.
"""

from terminology import observation_definition, panel, questionnaire
from terminology.collaborators import Collaborators
from terminology.outcome import NotApplicable, TranslationResult
from utils import DEFAULT_LOCALE, clean_str, logger

# resourceType → translator module (to_entity / to_resource)
TRANSLATORS = {
    questionnaire.RESOURCE_TYPE:          questionnaire,
    observation_definition.RESOURCE_TYPE: observation_definition,
    panel.RESOURCE_TYPE:                  panel,
}


class TranslationFailed(Exception):
    """A fatal translation error; carries the failed TranslationResult."""

    def __init__(self, result: TranslationResult):
        super().__init__(result.error.message if result.error else "translation failed")
        self.result = result


class UnsupportedResource(Exception):
    pass


class TerminologyService:

    def __init__(self, store, collaborators: Collaborators = None):
        self.store = store
        self.collaborators = collaborators or Collaborators.from_store(store)

    # ── Public API ────────────────────────────────────────────────────────────

    def read(self, resource_type: str, resource_id: str, locale: str = DEFAULT_LOCALE):
        """Exported resource, or None when unknown or not representable."""
        translator = self._translator(resource_type)
        entity = self.store.find_by_id(clean_str(resource_id))
        if entity is None:
            return None
        resource = translator.to_resource(entity, locale)
        if isinstance(resource, NotApplicable):
            logger.info(f"{resource_type}/{resource_id} not applicable: {resource.reason}")
            return None
        return resource

    def create(self, resource_type: str, resource: dict, locale: str = DEFAULT_LOCALE) -> tuple:
        """Returns (exported resource, OperationOutcome)."""
        translator = self._translator(resource_type)
        result = translator.to_entity(resource, self.collaborators, locale)
        return self._commit(resource_type, resource, result, "create", translator, locale)

    def update(
        self,
        resource_type: str,
        resource_id: str,
        resource: dict,
        locale: str = DEFAULT_LOCALE,
    ) -> tuple:
        """Returns (exported resource, OperationOutcome, created flag)."""
        translator = self._translator(resource_type)
        resource = dict(resource, id=resource_id)

        existing = self.store.find_by_id(clean_str(resource_id))
        if existing is None:
            logger.warning(
                f"{resource_type}/{resource_id} does not exist, creating it instead"
            )
            exported, outcome = self.create(resource_type, resource, locale)
            return exported, outcome, True

        result = translator.to_entity(resource, self.collaborators, locale, existing=existing)
        exported, outcome = self._commit(resource_type, resource, result, "update", translator, locale)
        return exported, outcome, False

    # ── Internal ──────────────────────────────────────────────────────────────

    def _translator(self, resource_type: str):
        translator = TRANSLATORS.get(resource_type)
        if translator is None:
            raise UnsupportedResource(f"Unsupported resource type '{resource_type}'")
        return translator

    def _commit(self, resource_type, resource, result, operation, translator, locale) -> tuple:
        resource_id = clean_str(resource.get("id")) or getattr(result.entity, "id", None)
        if not result.ok:
            self.store.record_translation(resource_type, resource_id, operation, result)
            raise TranslationFailed(result)

        for child in result.created:
            self.store.save(child)
        self.store.save(result.entity)
        self.store.record_translation(resource_type, resource_id, operation, result)

        exported = translator.to_resource(result.entity, locale)
        if isinstance(exported, NotApplicable):
            exported = None
        return exported, result.operation_outcome()
