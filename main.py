"""
main.py
-------
FastAPI microservice exposing the terminology store as FHIR R4 resources.

Endpoints:
  GET    /health                          → service health check
  GET    /fhir/ValueSet/{id}              → stored ValueSet document
  PUT    /fhir/ValueSet/{id}              → store a ValueSet (used by validCodedValueSet)
  GET    /fhir/{type}/{id}                → export a concept as Questionnaire / ObservationDefinition / List
  POST   /fhir/{type}                     → import a new resource
  PUT    /fhir/{type}/{id}                → import over an existing concept (upsert)
  GET    /history                         → translation history from database
  DELETE /history                         → clear translation history
  GET    /stats                           → aggregated translation statistics

The response locale is taken from the Accept-Language header.
"""


# Load .env file first, before the database module reads its settings
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from database import ConceptStore
from terminology.service import TRANSLATORS, TerminologyService, TranslationFailed
from utils import env_flag, logger, normalize_locale

VERSION = "1.0.0"

# ── App setup ─────────────────────────────────────────────────────────────────
app = FastAPI(
    title="Terminology FHIR Sync",
    description="Two-way sync between a coded terminology store and FHIR R4 resources",
    version=VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Store / service instances (created once at startup) ───────────────────────
store   = ConceptStore()
service = TerminologyService(store)


@app.on_event("startup")
async def startup():
    store.init_db()
    if env_flag("SEED_REFERENCE_DATA", True):
        store.seed_reference_data()
    logger.info("Terminology FHIR Sync started — http://localhost:8000")


# ── Health ────────────────────────────────────────────────────────────────────
@app.get("/health")
async def health():
    return {
        "status": "running",
        "version": VERSION,
        "service": "Terminology FHIR Sync",
        "database_backend": store.backend,
        "concepts": store.count_entities(),
        "resource_types": sorted(TRANSLATORS),
    }


# ── ValueSet documents ────────────────────────────────────────────────────────
@app.get("/fhir/ValueSet/{value_set_id}")
async def read_value_set(value_set_id: str):
    document = store.resolve_value_set(value_set_id)
    if document is None:
        raise HTTPException(404, f"ValueSet/{value_set_id} not found")
    return JSONResponse(content=document)


@app.put("/fhir/ValueSet/{value_set_id}")
async def put_value_set(value_set_id: str, request: Request):
    body = await _resource_body(request, "ValueSet")
    document = store.save_value_set(dict(body, id=value_set_id))
    return JSONResponse(content=document)


# ── Concept resources ─────────────────────────────────────────────────────────
@app.get("/fhir/{resource_type}/{resource_id}")
async def read_resource(resource_type: str, resource_id: str, request: Request):
    _require_supported(resource_type)
    resource = service.read(resource_type, resource_id, _locale(request))
    if resource is None:
        raise HTTPException(404, f"{resource_type}/{resource_id} not found")
    return JSONResponse(content=resource)


@app.post("/fhir/{resource_type}")
async def create_resource(resource_type: str, request: Request):
    """
    Import a new resource. Returns the stored concept re-exported as the
    same resource type, plus an OperationOutcome listing any warnings.
    """
    _require_supported(resource_type)
    body = await _resource_body(request, resource_type)
    try:
        resource, outcome = service.create(resource_type, body, _locale(request))
    except TranslationFailed as e:
        return JSONResponse(status_code=422, content=e.result.operation_outcome())
    return JSONResponse(status_code=201, content={"resource": resource, "outcome": outcome})


@app.put("/fhir/{resource_type}/{resource_id}")
async def update_resource(resource_type: str, resource_id: str, request: Request):
    _require_supported(resource_type)
    body = await _resource_body(request, resource_type)
    try:
        resource, outcome, created = service.update(
            resource_type, resource_id, body, _locale(request)
        )
    except TranslationFailed as e:
        return JSONResponse(status_code=422, content=e.result.operation_outcome())
    return JSONResponse(
        status_code=201 if created else 200,
        content={"resource": resource, "outcome": outcome},
    )


# ── History ───────────────────────────────────────────────────────────────────
@app.get("/history")
async def history():
    return JSONResponse(content={"translations": store.get_history()})


@app.delete("/history")
async def delete_history():
    store.clear_history()
    return {"message": "History cleared"}


# ── Statistics ────────────────────────────────────────────────────────────────
@app.get("/stats")
async def stats():
    """Aggregated analytics about all translation passes processed."""
    return JSONResponse(content=store.get_stats())


# ── Internal helpers ──────────────────────────────────────────────────────────
def _locale(request: Request) -> str:
    return normalize_locale(request.headers.get("accept-language", ""))


def _require_supported(resource_type: str):
    if resource_type not in TRANSLATORS:
        raise HTTPException(404, f"Unsupported resource type '{resource_type}'")


async def _resource_body(request: Request, resource_type: str) -> dict:
    try:
        body = await request.json()
    except ValueError:
        # JSONDecodeError and UnicodeDecodeError both subclass ValueError
        raise HTTPException(400, "Request body must be valid UTF-8 JSON")
    if not isinstance(body, dict):
        raise HTTPException(400, "Request body must be a JSON object")
    declared = body.get("resourceType")
    if declared and declared != resource_type:
        raise HTTPException(400, f"resourceType '{declared}' does not match '{resource_type}'")
    return body
