"""
FastAPI Backend for the VQF onboarding engine

Provides REST API endpoints for:
- Form validation
- Risk classification and template selection
- Template field mapping (preview)
- Document generation through the rendering backend
"""

import logging
import threading
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from config.settings import settings, validate_settings
from config.form_schema import FormState
from config.template_registry import UnknownTemplateError, list_templates

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)


# ============================================================================
# APP SETUP
# ============================================================================

app = FastAPI(
    title="VQF Onboarding API",
    description="Validation, risk classification and VQF 902.x document generation",
    version="1.0.0"
)

# CORS middleware for the wizard frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    api_version: str
    render_api: str
    config_issues: List[str] = []


class ValidationResponse(BaseModel):
    """Whole-form validation result."""
    is_valid: bool
    errors: Dict[str, str]
    messages: List[str]


class SelectionResponse(BaseModel):
    templates: List[str]
    is_high_risk: bool


class MappingResponse(BaseModel):
    template_id: str
    fields: Dict[str, str]


# ============================================================================
# SESSIONS
# ============================================================================

_generators = {}
_completed_sessions = set()
_sessions_lock = threading.Lock()


def get_document_generator(session_id: str):
    """
    One DocumentGenerator per wizard session, created on first use.
    Raises SubmissionBlockedError for a session that already generated its documents.
    """
    from backend.document_generator import DocumentGenerator, SubmissionBlockedError

    with _sessions_lock:
        if session_id in _completed_sessions:
            raise SubmissionBlockedError("Documents were already generated for this form")
        if session_id not in _generators:
            _generators[session_id] = DocumentGenerator()
        return _generators[session_id]


def finish_session(session_id: str):
    """Drop a session's generator once its documents exist; only the id is kept."""
    with _sessions_lock:
        _generators.pop(session_id, None)
        _completed_sessions.add(session_id)


# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.get("/", response_model=HealthResponse)
async def root():
    """Liveness check."""
    return HealthResponse(
        status="healthy",
        api_version="1.0.0",
        render_api=settings.submit_url,
    )


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint, including configuration problems."""
    is_valid, issues = validate_settings()
    return HealthResponse(
        status="healthy" if is_valid else "degraded",
        api_version="1.0.0",
        render_api=settings.submit_url,
        config_issues=issues,
    )


@app.get("/templates")
async def get_templates():
    """List the VQF templates the engine can generate."""
    return {
        "success": True,
        "templates": list_templates()
    }


@app.post("/validate", response_model=ValidationResponse)
async def validate_form(state: FormState):
    """Validate a complete form and return errors by field path."""
    from backend.form_validator import validate_form_data, format_validation_error

    errors = validate_form_data(state)
    return ValidationResponse(
        is_valid=not errors,
        errors=errors,
        messages=[format_validation_error(path, message) for path, message in errors.items()],
    )


@app.post("/readiness")
async def check_readiness(state: FormState):
    """Pre-flight check with blocking errors and non-blocking warnings."""
    from backend.document_generator import check_generation_readiness

    return check_generation_readiness(state)


@app.post("/risk")
async def classify(state: FormState):
    """Classify the risk of a form and list every indicator."""
    from backend.risk_classifier import classify_risk, map_risk_level

    risk = classify_risk(state)
    return {
        **risk.to_dict(),
        "risk_level": map_risk_level(state).value,
    }


@app.post("/templates/select", response_model=SelectionResponse)
async def select(state: FormState):
    """Templates that must be generated for a form, in submission order."""
    from backend.risk_classifier import classify_risk
    from backend.template_selector import select_templates

    risk = classify_risk(state)
    return SelectionResponse(
        templates=select_templates(state, risk),
        is_high_risk=risk.is_high_risk,
    )


@app.post("/map/{template_id}", response_model=MappingResponse)
async def map_template(template_id: str, state: FormState):
    """Preview the field payload sent for one template."""
    from backend.data_mapper import MappingError, map_to_template_fields

    try:
        fields = map_to_template_fields(state, template_id)
    except UnknownTemplateError:
        raise HTTPException(status_code=404, detail=f"Template {template_id} not found")
    except MappingError as e:
        raise HTTPException(status_code=422, detail=f"Unexpected data error: {e}")

    return MappingResponse(
        template_id=template_id,
        fields={key: str(value) for key, value in fields.items()},
    )


@app.post("/submit")
def submit_form(state: FormState, session_id: Optional[str] = None):
    """
    Generate every required document for a form.

    Plain def: the rendering requests block, so FastAPI runs this in its threadpool.
    Per-template failures are reported in the body; the request itself only
    fails when the form is invalid (422) or the session is busy or already
    submitted (409).
    """
    from backend.form_validator import FormValidationError
    from backend.document_generator import DocumentGenerator, SubmissionBlockedError

    try:
        generator = get_document_generator(session_id) if session_id else DocumentGenerator()
        report = generator.submit(state)
    except FormValidationError as e:
        raise HTTPException(status_code=422, detail={"errors": e.errors})
    except SubmissionBlockedError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if session_id and report.success:
        finish_session(session_id)
    return report


# ============================================================================
# RUN SERVER
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
