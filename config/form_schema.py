"""
Form state definitions for the VQF onboarding wizard.

FormState is the single aggregate for one onboarding session. Every section is
an immutable pydantic model; changes go through the update operations in
backend/form_state.py, which always return a new FormState.
"""

from enum import Enum
from typing import Optional, List, Dict, Literal, Union
from uuid import uuid4
from pydantic import BaseModel, ConfigDict, Field


TOTAL_STEPS = 14
MAX_CONTROLLING_PERSONS = 4
MAX_BENEFICIAL_OWNERS = 10


# =============================================================================
# ENUMS
# =============================================================================

class ClientType(str, Enum):
    """Legal form of the client being onboarded."""
    SWISS_LLC = "swiss_llc"
    SWISS_SOLE = "swiss_sole"
    SWISS_ASSOC = "swiss_assoc"
    FOREIGN_LLC = "foreign_llc"
    FOREIGN_SOLE = "foreign_sole"

    @property
    def is_sole(self) -> bool:
        return "sole" in self.value

    @property
    def is_entity(self) -> bool:
        return "llc" in self.value or "assoc" in self.value

    @property
    def is_swiss(self) -> bool:
        return self.value.startswith("swiss")


class PepType(str, Enum):
    DOMESTIC = "domestic"
    FOREIGN = "foreign"
    INTERNATIONAL = "international"


class VerificationMethod(str, Enum):
    """How the client's identity is verified in person."""
    OFFICE = "office"
    CLIENT_SITE = "client_site"
    VIDEO = "video"


# =============================================================================
# VOCABULARIES (select options shown by the wizard)
# =============================================================================

CLIENT_TYPE_LABELS = {
    ClientType.SWISS_LLC: "Swiss Limited Liability Company",
    ClientType.FOREIGN_LLC: "Foreign Limited Liability Company",
    ClientType.SWISS_ASSOC: "Swiss Association",
    ClientType.SWISS_SOLE: "Swiss Sole Proprietorship",
    ClientType.FOREIGN_SOLE: "Foreign Sole Proprietorship",
}

INDUSTRIES = [
    "payment_service_provider",
    "commercial_acquirer",
    "event_organizer",
    "media_house",
    "online_publisher",
    "other",
]

AUTHORIZATION_TYPES = {
    "individual": "Individual Signatory",
    "collective": "Collective Signatory",
    "poa": "Power of Attorney",
    "other": "Other",
}

OWNER_RELATIONSHIPS = [
    "spouse", "child", "parent", "sibling",
    "business_partner", "trust_beneficiary", "other",
]

REVENUE_RANGES = {
    "<50k": "< 50,000 CHF",
    "50k-250k": "50,000 – 250,000 CHF",
    "250k-1m": "250,000 – 1,000,000 CHF",
    "1m-5m": "1,000,000 – 5,000,000 CHF",
    "5m-25m": "5,000,000 – 25,000,000 CHF",
    "25m-100m": "25,000,000 – 100,000,000 CHF",
    ">100m": "> 100,000,000 CHF",
}

ASSET_RANGES = {
    "<100k": "< 100,000 CHF",
    "100k-500k": "100,000 – 500,000 CHF",
    "500k-2m": "500,000 – 2,000,000 CHF",
    "2m-10m": "2,000,000 – 10,000,000 CHF",
    "10m-50m": "10,000,000 – 50,000,000 CHF",
    "50m-200m": "50,000,000 – 200,000,000 CHF",
    ">200m": "> 200,000,000 CHF",
}

LIABILITY_RANGES = {
    "none": "No liabilities",
    "<50k": "< 50,000 CHF",
    "50k-250k": "50,000 – 250,000 CHF",
    "250k-1m": "250,000 – 1,000,000 CHF",
    "1m-5m": "1,000,000 – 5,000,000 CHF",
    "5m-25m": "5,000,000 – 25,000,000 CHF",
    ">25m": "> 25,000,000 CHF",
}

ASSET_CATEGORIES = ["business", "personal", "investment"]

BUSINESS_PURPOSES = {
    "payment_processing": "Payment Processing",
    "merchant_services": "Merchant Services",
    "ecommerce": "E-commerce Solutions",
    "subscription_billing": "Subscription Billing",
    "international_payments": "International Payments",
    "crypto_services": "Cryptocurrency Services",
    "financial_services": "Financial Services",
    "consulting": "Consulting Services",
    "other": "Other",
}

SANCTIONED_COUNTRIES = [
    "Afghanistan", "Belarus", "Central African Republic", "Cuba", "Democratic Republic of Congo",
    "Eritrea", "Guinea-Bissau", "Iran", "Iraq", "Lebanon", "Libya", "Mali", "Myanmar",
    "Nicaragua", "North Korea", "Russia", "Somalia", "South Sudan", "Sudan", "Syria",
    "Venezuela", "Yemen", "Zimbabwe",
]

VIDEO_TIME_SLOTS = [
    "09:00", "09:30", "10:00", "10:30", "11:00", "11:30",
    "13:00", "13:30", "14:00", "14:30", "15:00", "15:30", "16:00", "16:30",
]


def _new_id() -> str:
    return uuid4().hex[:12]


# =============================================================================
# SECTION MODELS
# =============================================================================

class FormSection(BaseModel):
    """Base for every form section: immutable, replaced wholesale on update."""
    model_config = ConfigDict(frozen=True)


class UploadedFile(FormSection):
    """A file picked in the wizard. Only its metadata drives validation."""
    model_config = ConfigDict(frozen=True, ser_json_bytes="base64", val_json_bytes="base64")

    filename: str
    content_type: str = "application/octet-stream"
    size: int = Field(0, ge=0)
    content: Optional[bytes] = Field(None, repr=False)


class CompanyInfo(FormSection):
    name: str = ""
    address: str = ""
    postal: str = ""
    city: str = ""
    canton: str = ""
    phone: str = ""
    email: str = ""
    industry: str = ""


class SoleProprietorInfo(FormSection):
    owner_name: str = ""
    owner_address: str = ""
    postal: str = ""
    city: str = ""
    canton: str = ""
    phone: str = ""
    email: str = ""
    industry: str = ""
    owner_dob: str = ""
    owner_nationality: str = ""
    establishment_date: str = ""
    uid: str = ""


class ClientIdentity(FormSection):
    """Read-only view over whichever identity section is authoritative."""
    name: str = ""
    address: str = ""
    postal: str = ""
    city: str = ""
    canton: str = ""
    phone: str = ""
    email: str = ""
    industry: str = ""


class EntityInfo(FormSection):
    uid: str = ""
    incorporation_date: str = ""
    purpose: str = ""
    is_listed: str = ""  # "yes" / "no"
    exchange_name: str = ""
    register_file: Optional[UploadedFile] = None
    articles_file: Optional[UploadedFile] = None

    @property
    def has_register_extract(self) -> bool:
        return self.register_file is not None

    @property
    def has_articles(self) -> bool:
        return self.articles_file is not None


class EstablishingPerson(FormSection):
    id: str = Field(default_factory=_new_id)
    name: str = ""
    address: str = ""
    postal: str = ""
    city: str = ""
    country: str = ""
    dob: str = ""
    nationality: str = ""
    toa: str = ""  # type of authorization, see AUTHORIZATION_TYPES
    iddoc: Optional[UploadedFile] = None
    poa: Optional[UploadedFile] = None

    @property
    def has_id_document(self) -> bool:
        return self.iddoc is not None

    @property
    def has_power_of_attorney(self) -> bool:
        return self.poa is not None


class ControllingPerson(FormSection):
    id: str = Field(default_factory=_new_id)
    first_name: str = ""
    last_name: str = ""
    dob: str = ""
    nationality: str = ""
    address: str = ""
    postal: str = ""
    city: str = ""
    country: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class ManagingDirector(FormSection):
    first_name: str = ""
    last_name: str = ""
    dob: str = ""
    nationality: str = ""
    address: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class ControllingInfo(FormSection):
    is_25_percent: bool = False
    in_other_way: bool = False
    controlling_persons: List[ControllingPerson] = Field(default_factory=list)
    managing_director: ManagingDirector = Field(default_factory=ManagingDirector)

    @property
    def is_controlled(self) -> bool:
        """True when at least one gating question was answered yes."""
        return self.is_25_percent or self.in_other_way


class BeneficialOwner(FormSection):
    id: str = Field(default_factory=_new_id)
    first_name: str = ""
    last_name: str = ""
    dob: str = ""
    nationality: str = ""
    address: str = ""
    relationship: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class BeneficialInfo(FormSection):
    is_sole_owner: bool = True
    beneficial_owners: List[BeneficialOwner] = Field(default_factory=list)

    @property
    def effective_owners(self) -> List[BeneficialOwner]:
        """Owners that count; the list is ignored for a sole owner."""
        return [] if self.is_sole_owner else list(self.beneficial_owners)


class BusinessActivity(FormSection):
    profession_activity: str = ""
    business_description: str = ""
    target_clients: str = ""
    main_countries: List[str] = Field(default_factory=list)


class FinancialInfo(FormSection):
    annual_revenue: str = ""
    total_assets: str = ""
    liabilities: str = ""


class TransactionInfo(FormSection):
    asset_nature: str = ""
    asset_origin: str = ""
    asset_category: str = ""
    is_other_category: bool = False
    monthly_volume: Optional[float] = None
    business_purposes: List[str] = Field(default_factory=list)


class NotPep(FormSection):
    is_pep: Literal[False] = False


class Pep(FormSection):
    is_pep: Literal[True] = True
    name: str = ""
    position: str = ""
    country: str = ""
    period: str = ""


class NoSanctions(FormSection):
    is_sanctions: Literal[False] = False


class SanctionsTies(FormSection):
    is_sanctions: Literal[True] = True
    name: str = ""
    country: str = ""
    nature: str = ""


class SanctionsInfo(FormSection):
    pep: Union[NotPep, Pep] = Field(default_factory=NotPep)
    sanctions: Union[NoSanctions, SanctionsTies] = Field(default_factory=NoSanctions)
    pep_type: Optional[PepType] = None
    has_pep_relationship: bool = False
    sanctioned_countries: List[str] = Field(default_factory=list)

    @property
    def is_pep(self) -> bool:
        return self.pep.is_pep

    @property
    def is_sanctions(self) -> bool:
        return self.sanctions.is_sanctions


class TermsInfo(FormSection):
    agree_privacy: bool = False
    agree_terms: bool = False
    confirm_truth: bool = False

    @property
    def all_accepted(self) -> bool:
        return self.agree_privacy and self.agree_terms and self.confirm_truth


class VerificationInfo(FormSection):
    verification_method: Optional[VerificationMethod] = None
    video_date: str = ""
    video_time: str = ""


class AdditionalInfo(FormSection):
    financial_statements: Optional[UploadedFile] = None
    business_plan: Optional[UploadedFile] = None
    licenses_permits: Optional[UploadedFile] = None
    supporting_documents: Optional[UploadedFile] = None


# =============================================================================
# AGGREGATE ROOT
# =============================================================================

class FormState(FormSection):
    """
    Complete state of one onboarding session.
    Created empty at session start and discarded after a successful submission.
    """
    client_type: Optional[ClientType] = None
    company_info: CompanyInfo = Field(default_factory=CompanyInfo)
    sole_proprietor_info: SoleProprietorInfo = Field(default_factory=SoleProprietorInfo)
    entity_info: EntityInfo = Field(default_factory=EntityInfo)
    establishing_persons: List[EstablishingPerson] = Field(default_factory=list)
    controlling_info: ControllingInfo = Field(default_factory=ControllingInfo)
    beneficial_info: BeneficialInfo = Field(default_factory=BeneficialInfo)
    business_activity: BusinessActivity = Field(default_factory=BusinessActivity)
    financial_info: FinancialInfo = Field(default_factory=FinancialInfo)
    transaction_info: TransactionInfo = Field(default_factory=TransactionInfo)
    sanctions_info: SanctionsInfo = Field(default_factory=SanctionsInfo)
    terms_info: TermsInfo = Field(default_factory=TermsInfo)
    verification_info: VerificationInfo = Field(default_factory=VerificationInfo)
    additional_info: AdditionalInfo = Field(default_factory=AdditionalInfo)
    validation_errors: Dict[str, str] = Field(default_factory=dict)
    current_step: int = Field(1, ge=1, le=TOTAL_STEPS)

    @property
    def is_sole_proprietor(self) -> bool:
        return self.client_type is not None and self.client_type.is_sole

    def identity(self) -> ClientIdentity:
        """Identity and contact data from the section selected by client_type."""
        if self.is_sole_proprietor:
            sole = self.sole_proprietor_info
            return ClientIdentity(
                name=sole.owner_name,
                address=sole.owner_address,
                postal=sole.postal,
                city=sole.city,
                canton=sole.canton,
                phone=sole.phone,
                email=sole.email,
                industry=sole.industry,
            )
        company = self.company_info
        return ClientIdentity(**company.model_dump())
