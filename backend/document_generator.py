"""
Document Generator - Submits a completed form to the PDF rendering backend.

One request per selected template, strictly in order. Every template is
attempted even when an earlier one fails; nothing is retried or rolled back.

Status flow per attempt: IDLE -> SUBMITTING -> SUCCESS | PARTIAL_FAILURE | FAILURE
"""

import logging
import threading
from datetime import date
from enum import Enum
from typing import Dict, List, Optional

import requests
from pydantic import BaseModel, Field

from config.settings import settings
from config.form_schema import FormState
from config.template_registry import (
    RequestEncoding,
    UnknownTemplateError,
    get_document_name,
    get_template_schema,
    is_known_template,
)
from backend.form_validator import FormValidationError, validate_form_data
from backend.data_mapper import MappingError, map_to_template_fields
from backend.template_selector import get_templates_to_generate

logger = logging.getLogger(__name__)

# Multipart names of the additional document slots
ATTACHMENT_FIELDS = {
    "financial_statements": "financialStatements",
    "business_plan": "businessPlan",
    "licenses_permits": "licensesPermits",
    "supporting_documents": "supportingDocuments",
}


# ============================================================================
# ENUMS & MODELS
# ============================================================================

class SubmissionStatus(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"
    FAILURE = "failure"


class SubmissionBlockedError(Exception):
    """Raised when a submission is in flight or the form was already submitted."""
    pass


class TemplateResult(BaseModel):
    """Outcome of one template request."""
    template_id: str
    document_name: str = ""
    success: bool
    pdf_path: Optional[str] = None
    submission_timestamp: Optional[str] = None
    error: Optional[str] = None


class GenerationReport(BaseModel):
    """Outcome of a whole submission attempt."""
    success: bool
    status: SubmissionStatus
    templates: List[str] = Field(default_factory=list)
    documents: List[TemplateResult] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class ReadinessReport(BaseModel):
    ready: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


# ============================================================================
# PRE-FLIGHT CHECKS
# ============================================================================

def check_generation_readiness(state: FormState) -> ReadinessReport:
    """
    Quick check of the fields every document needs.
    Warnings do not block generation.
    """
    errors = []
    warnings = []
    identity = state.identity()

    if state.client_type is None:
        errors.append("Client type is required")
    if not identity.name:
        errors.append("Company name or owner name is required")
    if not identity.address:
        errors.append("Address is required")
    if state.sanctions_info.is_pep and state.sanctions_info.pep_type is None:
        errors.append("PEP type must be specified when PEP status is true")
    if not state.establishing_persons:
        errors.append("At least one establishing person is required")

    if state.client_type is not None and state.client_type.is_swiss and state.client_type.is_entity:
        if not state.entity_info.uid:
            warnings.append("UID is recommended for Swiss entities")
    if not state.financial_info.annual_revenue:
        warnings.append("Annual revenue information is recommended")

    return ReadinessReport(ready=not errors, errors=errors, warnings=warnings)


def get_document_status(documents: List[TemplateResult], expected: Optional[int] = None) -> Dict[str, int]:
    """Counts of generated, failed and not yet attempted documents."""
    total = max(expected or 0, len(documents))
    successful = sum(1 for d in documents if d.success)
    failed = sum(1 for d in documents if not d.success)
    return {
        "total": total,
        "successful": successful,
        "failed": failed,
        "pending": total - successful - failed,
    }


# ============================================================================
# GENERATOR
# ============================================================================

class DocumentGenerator:
    """
    Sends one onboarding session's documents to the rendering backend.
    Use one instance per session: it refuses a second submission once the
    first one succeeded.
    """

    def __init__(self, submit_url: Optional[str] = None, timeout: Optional[float] = None):
        self.submit_url = submit_url or settings.submit_url
        self.timeout = timeout or settings.REQUEST_TIMEOUT_SECONDS
        self.status = SubmissionStatus.IDLE
        self.last_report: Optional[GenerationReport] = None
        self.submission_history: List[GenerationReport] = []
        self._lock = threading.Lock()

    @property
    def is_submitting(self) -> bool:
        return self.status == SubmissionStatus.SUBMITTING

    @property
    def has_succeeded(self) -> bool:
        return self.status == SubmissionStatus.SUCCESS

    def submit(
        self,
        state: FormState,
        templates: Optional[List[str]] = None,
        today: Optional[date] = None,
    ) -> GenerationReport:
        """
        Validate, select templates and submit them one after another.

        Args:
            state: Completed form state
            templates: Explicit template ids (defaults to the selector's choice)
            today: Date printed on the documents

        Raises:
            SubmissionBlockedError: a submission is running or already succeeded
            FormValidationError: the form has validation errors
            UnknownTemplateError: an explicit template id is not a VQF template
            ValueError: an explicit template list is empty
        """
        with self._lock:
            if self.is_submitting:
                raise SubmissionBlockedError("A submission is already in progress")
            if self.has_succeeded:
                raise SubmissionBlockedError("Documents were already generated for this form")
            previous_status = self.status
            self.status = SubmissionStatus.SUBMITTING

        try:
            templates = self._prepare(state, templates, today)
        except Exception:
            self.status = previous_status
            raise

        logger.info(f"[Render] Submitting {len(templates)} template(s) to {self.submit_url}")

        documents = []
        try:
            for template_id in templates:
                documents.append(self._submit_template(state, template_id, today))
        finally:
            failures = [d for d in documents if not d.success]
            if len(documents) < len(templates) or (failures and len(failures) == len(documents)):
                self.status = SubmissionStatus.FAILURE
            elif failures:
                self.status = SubmissionStatus.PARTIAL_FAILURE
            else:
                self.status = SubmissionStatus.SUCCESS

        report = GenerationReport(
            success=self.status == SubmissionStatus.SUCCESS,
            status=self.status,
            templates=list(templates),
            documents=documents,
            errors=[f"{d.template_id}: {d.error}" for d in documents if not d.success],
        )
        self.last_report = report
        self.submission_history.append(report)

        logger.info(
            f"[Render] Finished with status {self.status.value}: "
            f"{len(documents) - len(report.errors)}/{len(documents)} generated"
        )
        return report

    def _prepare(self, state: FormState, templates: Optional[List[str]], today: Optional[date]) -> List[str]:
        """Validation gate and template list, run while the session is marked as submitting."""
        errors = validate_form_data(state, today)
        if errors:
            logger.info(f"[Render] Submission blocked by {len(errors)} validation error(s)")
            raise FormValidationError(errors)

        if templates is None:
            templates = get_templates_to_generate(state)
        if not templates:
            raise ValueError("At least one template must be selected")
        for template_id in templates:
            if not is_known_template(template_id):
                raise UnknownTemplateError(template_id)
        return list(templates)

    def _submit_template(self, state: FormState, template_id: str, today: Optional[date]) -> TemplateResult:
        """Map and send one template. Never raises; failures become results."""
        result = TemplateResult(
            template_id=template_id,
            document_name=get_document_name(template_id),
            success=False,
        )

        try:
            fields = map_to_template_fields(state, template_id, today)
        except MappingError as e:
            logger.error(f"[Render] {template_id} mapping failed: {e}")
            result.error = f"Unexpected data error: {e}"
            return result

        try:
            response = self._post(state, template_id, fields)
            return self._read_response(result, response)
        except requests.exceptions.Timeout:
            logger.warning(f"[Render] {template_id} timed out after {self.timeout}s")
            result.error = f"Request timed out after {self.timeout:g} seconds"
        except requests.exceptions.ConnectionError as e:
            logger.warning(f"[Render] {template_id} connection failed: {e}")
            result.error = "Could not connect to the document service"
        except requests.exceptions.RequestException as e:
            logger.warning(f"[Render] {template_id} request failed: {e}")
            result.error = f"Network error: {e}"
        except Exception as e:
            logger.exception(f"[Render] {template_id} failed unexpectedly")
            result.error = f"Unexpected error: {e}"
        return result

    def _post(self, state: FormState, template_id: str, fields: dict) -> requests.Response:
        schema = get_template_schema(template_id)

        if schema.encoding == RequestEncoding.JSON:
            payload = {"template": template_id, **fields}
            return requests.post(self.submit_url, json=payload, timeout=self.timeout)

        # (None, value) parts force multipart/form-data even without files
        parts = [("template", (None, template_id))]
        parts += [(key, (None, str(value))) for key, value in fields.items()]
        for slot, name in ATTACHMENT_FIELDS.items():
            upload = getattr(state.additional_info, slot)
            if upload is not None and upload.content is not None:
                parts.append((name, (upload.filename, upload.content, upload.content_type)))

        return requests.post(self.submit_url, files=parts, timeout=self.timeout)

    def _read_response(self, result: TemplateResult, response: requests.Response) -> TemplateResult:
        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.ok:
            message = None
            if isinstance(body, dict):
                message = body.get("error") or body.get("message")
            result.error = message or f"HTTP {response.status_code}: {response.reason}"
            logger.warning(f"[Render] {result.template_id} rejected: {result.error}")
            return result

        if not isinstance(body, dict):
            result.error = "Invalid response from document service"
            logger.warning(f"[Render] {result.template_id} returned a malformed body")
            return result

        result.success = True
        result.pdf_path = body.get("pdfPath")
        result.submission_timestamp = body.get("submissionTimestamp")
        logger.info(f"[Render] {result.template_id} generated: {result.pdf_path}")
        return result

    def reset(self):
        """Forget the last attempt, e.g. when a new session starts."""
        self.status = SubmissionStatus.IDLE
        self.last_report = None
