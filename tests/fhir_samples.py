"""
tests/fhir_samples.py
---------------------
Builders for the FHIR resources used across the test suite.
"""

LOINC = "http://loinc.org"


def questionnaire(qid="q-glucose", title="Glucose Panel", options=(), item_type="choice", item_text=None):
    item = {"linkId": "1", "type": item_type}
    if item_text:
        item["text"] = item_text
    if options:
        item["answerOption"] = []
        for code, display in options:
            coding = {"system": "urn:uuid", "code": code}
            if display:
                coding["display"] = display
            item["answerOption"].append({"valueCoding": coding})
    resource = {"resourceType": "Questionnaire", "id": qid, "item": [item]}
    if title:
        resource["title"] = title
    return resource


def observation_definition(
    oid="od-glucose",
    text="Serum glucose",
    permitted=("Quantity",),
    codings=(),
    unit=None,
    precision=None,
    intervals=(),
    value_set=None,
):
    code = {"text": text} if text else {}
    if codings:
        code["coding"] = [{"system": s, "code": c} for s, c in codings]
    resource = {
        "resourceType": "ObservationDefinition",
        "id": oid,
        "code": code,
        "permittedDataType": list(permitted),
    }
    details = {}
    if unit:
        details["unit"] = {"coding": [{"code": unit}], "text": unit}
    if precision is not None:
        details["decimalPrecision"] = precision
    if details:
        resource["quantitativeDetails"] = details
    if intervals:
        resource["qualifiedInterval"] = [
            {
                "extension": [{
                    "url": "http://fhir.openmrs.org/ext/obs/reference-range",
                    "valueCode": kind,
                }],
                "range": {"low": {"value": low}, "high": {"value": high}},
            }
            for kind, low, high in intervals
        ]
    if value_set:
        resource["validCodedValueSet"] = {"reference": value_set}
    return resource


def panel(pid="panel-lft", title="Liver function", members=()):
    resource = {"resourceType": "List", "id": pid, "status": "current", "mode": "working"}
    if title:
        resource["title"] = title
    resource["entry"] = [{"item": {"reference": ref}} for ref in members]
    return resource


def value_set(vid="vs-result", concepts=(), system=None):
    include = {"concept": [{"code": c, "display": d} for c, d in concepts]}
    if system:
        include["system"] = system
    return {"resourceType": "ValueSet", "id": vid, "compose": {"include": [include]}}
