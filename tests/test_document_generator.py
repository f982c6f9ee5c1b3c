"""
Test Suite: Document Generation

Tests:
1. Readiness check
2. Successful submission of every selected template
3. Partial and total failure
4. Transport errors and malformed responses
5. Submission guard
"""

import sys
import os
from datetime import date

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
import requests

TODAY = date(2024, 6, 15)


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code=200, body=None, reason="OK"):
        self.status_code = status_code
        self.reason = reason
        self._body = body

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakeBackend:
    """Records every POST and answers from a per-template script."""

    def __init__(self, answers=None):
        self.answers = answers or {}
        self.calls = []

    def __call__(self, url, timeout=None, json=None, files=None):
        template_id = json["template"] if json is not None else dict(files)["template"][1]
        self.calls.append({"url": url, "template": template_id, "json": json, "files": files, "timeout": timeout})

        answer = self.answers.get(template_id)
        if isinstance(answer, Exception):
            raise answer
        if answer is not None:
            return answer
        return FakeResponse(200, {
            "pdfPath": f"/output/{template_id}.pdf",
            "submissionTimestamp": "2024-06-15T10:00:00Z",
        })

    @property
    def templates(self):
        return [c["template"] for c in self.calls]


@pytest.fixture
def backend(monkeypatch):
    fake = FakeBackend()
    monkeypatch.setattr("backend.document_generator.requests.post", fake)
    return fake


def test_readiness(complete_form):
    """Blocking errors and non-blocking warnings."""
    print("\nTEST 1: Readiness")
    print("-" * 40)

    from config.form_schema import FormState
    from backend.document_generator import check_generation_readiness
    from backend.form_state import set_entity_info_field, set_financial_info_field

    report = check_generation_readiness(complete_form)
    assert report.ready and report.errors == [] and report.warnings == []

    state = set_entity_info_field(complete_form, "uid", "")
    state = set_financial_info_field(state, "annual_revenue", "")
    report = check_generation_readiness(state)
    assert report.ready
    assert report.warnings == [
        "UID is recommended for Swiss entities",
        "Annual revenue information is recommended",
    ]

    report = check_generation_readiness(FormState())
    assert not report.ready
    assert "Client type is required" in report.errors
    assert "At least one establishing person is required" in report.errors
    print(f"   Empty form: {len(report.errors)} blocking errors")

    print(" PASSED: Readiness")


def test_successful_submission(backend, complete_form):
    """Every selected template is sent once, in order."""
    print("\nTEST 2: Successful Submission")
    print("-" * 40)

    from backend.document_generator import DocumentGenerator, SubmissionStatus

    generator = DocumentGenerator(submit_url="http://render.test/api/submit", timeout=5)
    report = generator.submit(complete_form, today=TODAY)

    assert report.success
    assert report.status == SubmissionStatus.SUCCESS
    assert backend.templates == ["902.1e", "902.5e", "902.9e"]
    assert [d.template_id for d in report.documents] == backend.templates
    assert report.documents[0].pdf_path == "/output/902.1e.pdf"
    assert report.documents[0].document_name == "Identification Form"
    assert report.errors == []
    assert generator.has_succeeded and not generator.is_submitting
    assert generator.submission_history == [report]
    print(f"   Generated: {[d.pdf_path for d in report.documents]}")

    first = backend.calls[0]
    assert first["url"] == "http://render.test/api/submit"
    assert first["timeout"] == 5
    assert first["json"] is None
    parts = dict(first["files"])
    assert parts["6"] == (None, "Muster Payments AG")
    print("   902.1e sent as multipart")

    profile = backend.calls[1]
    assert profile["files"] is None
    assert profile["json"]["template"] == "902.5e"
    assert profile["json"]["customerName"] == "Muster Payments AG"
    print("   902.5e sent as JSON")

    print(" PASSED: Successful submission")


def test_attachments_in_multipart(backend, llc_store):
    """Additional documents travel as file parts under their fixed names."""
    from conftest import pdf
    from backend.document_generator import DocumentGenerator

    llc_store.dispatch("set_additional_info_field", field="business_plan", value=pdf("plan.pdf"))
    DocumentGenerator().submit(llc_store.state, templates=["902.1e"], today=TODAY)

    parts = backend.calls[0]["files"]
    files = {name: value for name, value in parts if value[0] is not None}
    assert files == {"businessPlan": ("plan.pdf", b"%PDF-1.4", "application/pdf")}


def test_partial_failure(backend, complete_form):
    """A failing template does not stop the ones after it."""
    print("\nTEST 3: Partial Failure")
    print("-" * 40)

    from backend.document_generator import DocumentGenerator, SubmissionStatus, get_document_status

    backend.answers["902.5e"] = FakeResponse(500, {"error": "Template rendering failed"}, "Internal Server Error")

    generator = DocumentGenerator()
    report = generator.submit(complete_form, today=TODAY)

    assert backend.templates == ["902.1e", "902.5e", "902.9e"]
    assert report.status == SubmissionStatus.PARTIAL_FAILURE
    assert not report.success
    assert report.errors == ["902.5e: Template rendering failed"]
    assert [d.success for d in report.documents] == [True, False, True]
    assert get_document_status(report.documents) == {"total": 3, "successful": 2, "failed": 1, "pending": 0}
    print(f"   Errors: {report.errors}")

    # not a success, so a retry is allowed
    backend.answers.clear()
    assert generator.submit(complete_form, today=TODAY).success

    print(" PASSED: Partial failure")


def test_total_failure_and_transport_errors(backend, complete_form):
    """Every kind of failure becomes a per-template error message."""
    print("\nTEST 4: Transport Errors")
    print("-" * 40)

    from backend.document_generator import DocumentGenerator, SubmissionStatus

    backend.answers.update({
        "902.1e": requests.exceptions.Timeout("read timed out"),
        "902.5e": requests.exceptions.ConnectionError("refused"),
        "902.9e": FakeResponse(502, ValueError("no json"), "Bad Gateway"),
    })

    report = DocumentGenerator(timeout=30).submit(complete_form, today=TODAY)

    assert report.status == SubmissionStatus.FAILURE
    assert report.errors == [
        "902.1e: Request timed out after 30 seconds",
        "902.5e: Could not connect to the document service",
        "902.9e: HTTP 502: Bad Gateway",
    ]
    print("   Timeout, connection and HTTP errors reported")

    print(" PASSED: Transport errors")


def test_malformed_success_body(backend, complete_form):
    from backend.document_generator import DocumentGenerator

    backend.answers["902.9e"] = FakeResponse(200, ValueError("not json"))
    backend.answers["902.5e"] = FakeResponse(404, {"message": "Unknown template"}, "Not Found")

    report = DocumentGenerator().submit(complete_form, today=TODAY)
    assert report.errors == [
        "902.5e: Unknown template",
        "902.9e: Invalid response from document service",
    ]


def test_submission_guard(backend, complete_form):
    """No second submission after a success, until reset."""
    print("\nTEST 5: Submission Guard")
    print("-" * 40)

    from backend.document_generator import DocumentGenerator, SubmissionBlockedError, SubmissionStatus

    generator = DocumentGenerator()
    generator.submit(complete_form, today=TODAY)

    with pytest.raises(SubmissionBlockedError):
        generator.submit(complete_form, today=TODAY)
    assert len(backend.calls) == 3
    print("   Second submission refused")

    generator.reset()
    assert generator.status == SubmissionStatus.IDLE
    generator.submit(complete_form, today=TODAY)
    assert len(backend.calls) == 6

    print(" PASSED: Submission guard")


class ReentrantBackend(FakeBackend):
    """Tries to start a second submission while each request is in flight."""

    def __init__(self, generator, state):
        super().__init__()
        self.generator = generator
        self.state = state
        self.blocked = []

    def __call__(self, url, timeout=None, json=None, files=None):
        from backend.document_generator import SubmissionBlockedError

        try:
            self.generator.submit(self.state, today=TODAY)
        except SubmissionBlockedError as e:
            self.blocked.append(str(e))
        return super().__call__(url, timeout=timeout, json=json, files=files)


def test_no_second_submission_while_in_flight(monkeypatch, complete_form):
    """A submission started during another one is refused and sends nothing."""
    from backend.document_generator import DocumentGenerator, SubmissionStatus

    generator = DocumentGenerator()
    fake = ReentrantBackend(generator, complete_form)
    monkeypatch.setattr("backend.document_generator.requests.post", fake)

    report = generator.submit(complete_form, today=TODAY)

    assert report.success
    assert generator.status == SubmissionStatus.SUCCESS
    assert fake.blocked == ["A submission is already in progress"] * 3
    assert fake.templates == ["902.1e", "902.5e", "902.9e"]


def test_session_is_busy_during_validation(backend, monkeypatch, complete_form):
    """The session counts as submitting from the validation step on."""
    import backend.document_generator as document_generator
    from backend.document_generator import DocumentGenerator, SubmissionBlockedError

    generator = DocumentGenerator()
    blocked = []
    real_validate = document_generator.validate_form_data

    def validate_and_resubmit(state, today=None):
        with pytest.raises(SubmissionBlockedError) as excinfo:
            generator.submit(state, today=today)
        blocked.append(str(excinfo.value))
        return real_validate(state, today)

    monkeypatch.setattr("backend.document_generator.validate_form_data", validate_and_resubmit)

    assert generator.submit(complete_form, today=TODAY).success
    assert blocked == ["A submission is already in progress"]
    assert len(backend.calls) == 3


def test_empty_template_list(backend, complete_form):
    """An empty explicit list is refused and leaves the session open."""
    from backend.document_generator import DocumentGenerator, SubmissionStatus

    generator = DocumentGenerator()
    with pytest.raises(ValueError):
        generator.submit(complete_form, templates=[], today=TODAY)

    assert backend.calls == []
    assert generator.status == SubmissionStatus.IDLE
    assert generator.submission_history == []

    assert generator.submit(complete_form, today=TODAY).success


def test_invalid_form_is_not_sent(backend):
    """Validation errors stop the submission before any request."""
    from config.form_schema import FormState
    from backend.form_validator import FormValidationError
    from backend.document_generator import DocumentGenerator, SubmissionStatus

    generator = DocumentGenerator()
    with pytest.raises(FormValidationError) as excinfo:
        generator.submit(FormState(), today=TODAY)

    assert "client_type" in excinfo.value.errors
    assert backend.calls == []
    assert generator.status == SubmissionStatus.IDLE


def test_explicit_templates(backend, complete_form):
    from config.template_registry import UnknownTemplateError
    from backend.document_generator import DocumentGenerator

    with pytest.raises(UnknownTemplateError):
        DocumentGenerator().submit(complete_form, templates=["902.1e", "903.0x"], today=TODAY)
    assert backend.calls == []

    report = DocumentGenerator().submit(complete_form, templates=["902.4e"], today=TODAY)
    assert report.success
    assert backend.templates == ["902.4e"]


def test_document_status_counts():
    from backend.document_generator import TemplateResult, get_document_status

    documents = [TemplateResult(template_id="902.1e", success=True)]
    assert get_document_status(documents, expected=3) == {
        "total": 3, "successful": 1, "failed": 0, "pending": 2,
    }
    assert get_document_status([]) == {"total": 0, "successful": 0, "failed": 0, "pending": 0}
