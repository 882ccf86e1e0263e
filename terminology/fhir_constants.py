"""
terminology/fhir_constants.py
-----------------------------
Single source of truth for registry names, coding system URIs, extension
URLs and reference-range codes used by the translators and the store.

Never hardcode these strings anywhere else — always import from here.
"""

# ── Concept classes ───────────────────────────────────────────────────────────
CLASS_TEST   = "Test"
CLASS_MISC   = "Misc"
CLASS_LABSET = "LabSet"

# ── Concept datatypes ─────────────────────────────────────────────────────────
DATATYPE_CODED   = "Coded"
DATATYPE_NUMERIC = "Numeric"
DATATYPE_TEXT    = "Text"
DATATYPE_NA      = "N/A"

# ── Mapping kinds ─────────────────────────────────────────────────────────────
MAP_TYPE_SAME_AS      = "SAME-AS"
SAME_AS_MAP_TYPE_UUID = "35543629-7d8c-11e1-909d-c80aa9edcf4e"

# ── Reference prefixes accepted on import ─────────────────────────────────────
URN_UUID_PREFIX             = "urn:uuid:"
VALUE_SET_PREFIXES          = ("ValueSet/", URN_UUID_PREFIX)
OBSERVATION_DEF_PREFIXES    = ("ObservationDefinition/", URN_UUID_PREFIX)
ANSWER_CODING_SYSTEM        = "urn:uuid"

# ── ObservationDefinition.permittedDataType ───────────────────────────────────
PERMITTED_QUANTITY          = "Quantity"
PERMITTED_CODEABLE_CONCEPT  = "CodeableConcept"
PERMITTED_STRING            = "string"

DATATYPE_TO_PERMITTED = {
    DATATYPE_CODED:   PERMITTED_CODEABLE_CONCEPT,
    DATATYPE_NUMERIC: PERMITTED_QUANTITY,
    DATATYPE_TEXT:    PERMITTED_STRING,
}

# ── Reference ranges ──────────────────────────────────────────────────────────
REFERENCE_RANGE_EXTENSION = "http://fhir.openmrs.org/ext/obs/reference-range"

RANGE_NORMAL   = "normal"
RANGE_CRITICAL = "treatment"
RANGE_ABSOLUTE = "absolute"

# extension code → standard qualifiedInterval.category code
RANGE_CATEGORY = {
    RANGE_NORMAL:   "reference",
    RANGE_CRITICAL: "critical",
    RANGE_ABSOLUTE: "absolute",
}
CATEGORY_TO_RANGE = {v: k for k, v in RANGE_CATEGORY.items()}

# ── Official FHIR coding systems ──────────────────────────────────────────────
SYSTEMS = {
    "loinc":  "http://loinc.org",
    "snomed": "http://snomed.info/sct",
    "ciel":   "https://cielterminology.org",
    "icd10":  "http://hl7.org/fhir/sid/icd-10",
    "ucum":   "http://unitsofmeasure.org",
}

# ── Seed reference data (provisioned by ConceptStore.seed_reference_data) ─────
SEED_CLASSES = {
    CLASS_TEST:   "8d4907b2-c2cc-11de-8d13-0010c6dffd0f",
    CLASS_MISC:   "8d492774-c2cc-11de-8d13-0010c6dffd0f",
    CLASS_LABSET: "8d492026-c2cc-11de-8d13-0010c6dffd0f",
}

SEED_DATATYPES = {
    DATATYPE_NUMERIC: "8d4a4488-c2cc-11de-8d13-0010c6dffd0f",
    DATATYPE_CODED:   "8d4a48b6-c2cc-11de-8d13-0010c6dffd0f",
    DATATYPE_TEXT:    "8d4a4ab4-c2cc-11de-8d13-0010c6dffd0f",
    DATATYPE_NA:      "8d4a4c94-c2cc-11de-8d13-0010c6dffd0f",
}

SEED_MAP_TYPES = {
    MAP_TYPE_SAME_AS: SAME_AS_MAP_TYPE_UUID,
}

SEED_SOURCES = {
    "LOINC":     SYSTEMS["loinc"],
    "SNOMED CT": SYSTEMS["snomed"],
    "CIEL":      SYSTEMS["ciel"],
    "ICD-10":    SYSTEMS["icd10"],
}


def permitted_type_for(datatype_name: str) -> str:
    """Return the permittedDataType code for an internal datatype name."""
    return DATATYPE_TO_PERMITTED.get(datatype_name, "")


def is_same_as(kind) -> bool:
    """True when a mapping kind record denotes SAME-AS (by uuid or name)."""
    if kind is None:
        return False
    if getattr(kind, "uuid", None) == SAME_AS_MAP_TYPE_UUID:
        return True
    name = getattr(kind, "name", None) or ""
    return name.upper() == MAP_TYPE_SAME_AS
