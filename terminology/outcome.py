"""
terminology/outcome.py
----------------------
Error kinds and results of a translation pass.

Two levels of problems:
  1. Fatal     — MissingReferenceData, ValidationError. Raised inside a pass,
                 turned into TranslationResult.error by the pass runner.
                 Nothing from the pass may be persisted.
  2. Non-fatal — MappingConflict, UnresolvedReference. Recorded as issue
                 records, the pass still completes with a best-effort entity.

Issues are rendered as FHIR OperationOutcome resources, the format FHIR
clients expect for validation results.
"""

from dataclasses import dataclass, field
from typing import Optional

from utils import logger

# ── Kinds ─────────────────────────────────────────────────────────────────────
MISSING_REFERENCE_DATA = "MissingReferenceData"
VALIDATION_ERROR       = "ValidationError"
MAPPING_CONFLICT       = "MappingConflict"
UNRESOLVED_REFERENCE   = "UnresolvedReference"

# kind → OperationOutcome.issue.code
ISSUE_CODES = {
    MISSING_REFERENCE_DATA: "not-found",
    VALIDATION_ERROR:       "required",
    MAPPING_CONFLICT:       "conflict",
    UNRESOLVED_REFERENCE:   "not-found",
}


class TranslationError(Exception):
    """A fatal problem: the whole pass is aborted."""

    kind = VALIDATION_ERROR

    def __init__(self, message: str, location: str = ""):
        super().__init__(message)
        self.message = message
        self.location = location

    def as_issue(self) -> dict:
        return issue("error", self.kind, self.message, self.location)


class MissingReferenceData(TranslationError):
    """A classification, datatype or mapping kind is not provisioned."""

    kind = MISSING_REFERENCE_DATA


class ValidationError(TranslationError):
    """The resource does not carry enough data to build an entity."""

    kind = VALIDATION_ERROR


def issue(severity: str, kind: str, message: str, location: str = "") -> dict:
    return {
        "severity": severity,
        "code": ISSUE_CODES.get(kind, "processing"),
        "kind": kind,
        "message": message,
        "location": location,
    }


@dataclass
class TranslationResult:
    """
    Outcome of one import pass.

    `created` lists new child entities the caller must persist before
    `entity`. When `error` is set, `entity` is None and nothing may be saved.
    """
    entity: object = None
    created: list = field(default_factory=list)
    warnings: list = field(default_factory=list)
    error: Optional[TranslationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def issues(self) -> list:
        issues = list(self.warnings)
        if self.error is not None:
            issues.insert(0, self.error.as_issue())
        return issues

    def warning_kinds(self) -> list:
        return [w["kind"] for w in self.warnings]

    def operation_outcome(self) -> dict:
        return build_operation_outcome(self.issues)


@dataclass(frozen=True)
class NotApplicable:
    """Returned by exporters when an entity cannot be shown as that resource."""
    reason: str


def build_operation_outcome(issues: list) -> dict:
    if not issues:
        return {
            "resourceType": "OperationOutcome",
            "issue": [{
                "severity": "information",
                "code": "informational",
                "details": {"text": "All OK"},
            }],
        }
    return {
        "resourceType": "OperationOutcome",
        "issue": [
            {
                "severity": i["severity"],
                "code": i["code"],
                "details": {"text": i["message"]},
                "diagnostics": i.get("kind", ""),
                "expression": [i["location"]] if i.get("location") else [],
            }
            for i in issues
        ],
    }


def log_result(label: str, result: TranslationResult) -> None:
    if result.ok:
        logger.info(
            f"Translated {label}: entity={getattr(result.entity, 'id', None)} "
            f"created={len(result.created)} warnings={len(result.warnings)}"
        )
    else:
        logger.error(f"Translation of {label} failed: {result.error.kind}: {result.error.message}")
