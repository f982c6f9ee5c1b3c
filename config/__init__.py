# Config module
from .settings import settings, validate_settings
from .template_registry import (
    TemplateId,
    TemplateSchema,
    RequestEncoding,
    UnknownTemplateError,
    get_template_schema,
    get_template_ids,
    get_document_name,
    list_templates,
)
from .form_schema import (
    ClientType,
    PepType,
    VerificationMethod,
    UploadedFile,
    EstablishingPerson,
    ControllingPerson,
    BeneficialOwner,
    NotPep,
    Pep,
    NoSanctions,
    SanctionsTies,
    FormState,
)

__all__ = [
    "settings",
    "validate_settings",
    "TemplateId",
    "TemplateSchema",
    "RequestEncoding",
    "UnknownTemplateError",
    "get_template_schema",
    "get_template_ids",
    "get_document_name",
    "list_templates",
    "ClientType",
    "PepType",
    "VerificationMethod",
    "UploadedFile",
    "EstablishingPerson",
    "ControllingPerson",
    "BeneficialOwner",
    "NotPep",
    "Pep",
    "NoSanctions",
    "SanctionsTies",
    "FormState",
]
