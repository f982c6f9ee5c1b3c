"""
Data Mapper - FormState to VQF template payloads.

Two views of the same data:
- map_form_to_vqf(): structured VQF view (identification, risk profile,
  customer profile, Form-A persons, Form-K financials, metadata)
- map_to_template_fields(): the flat key -> value payload of one template,
  driven by the field contract in config/template_schemas.json

Missing optional values become a single blank " " (the documents' literal
placeholder); file presence becomes "true"/"false".
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from config.settings import settings
from config.form_schema import (
    FormState,
    PepType,
    Pep,
    CLIENT_TYPE_LABELS,
    AUTHORIZATION_TYPES,
    REVENUE_RANGES,
    ASSET_RANGES,
    LIABILITY_RANGES,
)
from config.template_registry import get_template_schema
from backend.form_validator import parse_date
from backend.risk_classifier import classify_risk, map_risk_level

logger = logging.getLogger(__name__)

BLANK = " "
CONST_PREFIX = "const:"
FIRST_PERSON_PREFIX = "firstEstablishingPerson."

DATE_FORMATS = {
    "us": "%m/%d/%Y",
    "gb": "%d/%m/%Y",
}


class MappingError(Exception):
    """Raised when a structurally required element is missing from the form."""
    pass


# ============================================================================
# FORMATTERS
# ============================================================================

def format_date(value: Union[str, date, None], date_format: str = "gb") -> str:
    """Render a date as DD/MM/YYYY ("gb") or MM/DD/YYYY ("us")."""
    parsed = parse_date(value)
    if parsed is None:
        return ""
    return parsed.strftime(DATE_FORMATS[date_format])


def _parse_amount(amount: Any) -> Optional[float]:
    if amount is None or isinstance(amount, bool):
        return None
    try:
        return float(amount)
    except (TypeError, ValueError):
        return None


def format_currency(amount: Any) -> str:
    """
    Swiss franc amount without decimals, grouped the de-CH way.
    Examples: 1234567 -> "CHF 1’234’567", -1500 -> "CHF-1’500"
    """
    if amount is None or amount == "":
        return ""
    number = _parse_amount(amount)
    if number is None:
        return str(amount)
    grouped = f"{abs(round(number)):,}".replace(",", "’")
    if round(number) < 0:
        return f"CHF-{grouped}"
    return f"CHF {grouped}"


def format_flag(present: bool) -> str:
    return "true" if present else "false"


def yes_no(value: bool) -> str:
    return "Yes" if value else "No"


def compose_name(first_name: str, last_name: str) -> str:
    return f"{first_name or ''} {last_name or ''}".strip()


def _placeholder(value: Any) -> str:
    if value is None:
        return BLANK
    if isinstance(value, bool):
        return format_flag(value)
    text = str(value)
    return text if text else BLANK


# ============================================================================
# VQF DATA MODELS
# ============================================================================

class Identification(BaseModel):
    customer_name: str = ""
    customer_type: str = ""
    uid: str = ""
    address: str = ""
    postal_code: str = ""
    city: str = ""
    country: str = ""
    establishment_date: str = ""
    purpose: str = ""
    is_listed: str = "no"
    exchange_name: str = ""
    owner_name: str = ""
    owner_dob: str = ""
    owner_nationality: str = ""
    owner_address: str = ""


class RiskProfile(BaseModel):
    foreign_pep: bool = False
    domestic_pep: bool = False
    high_risk_country: bool = False
    senior_executive_decision: str = ""
    decision_date: str = ""


class CustomerProfile(BaseModel):
    business_activity: str = ""
    industry: str = ""
    expected_transactions: str = ""
    expected_volume: str = ""
    source_of_funds: str = ""
    risk_level: str = ""


class FormAPerson(BaseModel):
    name: str = ""
    address: str = ""
    postal: str = ""
    city: str = ""
    country: str = ""
    dob: str = ""
    nationality: str = ""
    authorization: Optional[str] = None
    ownership: Optional[str] = None


class FormA(BaseModel):
    establishing_persons: List[FormAPerson] = Field(default_factory=list)
    controlling_persons: List[FormAPerson] = Field(default_factory=list)
    beneficial_owners: List[FormAPerson] = Field(default_factory=list)
    sole_owner_ownership: str = ""


class FinancialInformation(BaseModel):
    annual_revenue: str = ""
    assets: str = ""
    liabilities: str = ""
    net_worth: str = ""


class TransactionProfile(BaseModel):
    typical_transaction_size: str = ""
    frequency: str = ""
    purpose: str = ""
    counterparties: str = ""


class FormK(BaseModel):
    financial_information: FinancialInformation = Field(default_factory=FinancialInformation)
    transaction_profile: TransactionProfile = Field(default_factory=TransactionProfile)


class Metadata(BaseModel):
    submission_date: str = ""
    vqf_member_number: str = ""
    amla_file_number: str = ""
    completed_by: str = ""
    language: str = "en"


class VQFMappingData(BaseModel):
    """Structured view of a form as the VQF documents read it."""
    identification: Identification
    risk_profile: RiskProfile
    customer_profile: CustomerProfile
    form_a: FormA
    form_k: FormK
    metadata: Metadata


# ============================================================================
# STRUCTURED MAPPING
# ============================================================================

def _net_worth(total_assets: str, liabilities: str) -> str:
    assets = _parse_amount(total_assets)
    debts = _parse_amount(liabilities)
    if assets is None or debts is None:
        return ""
    return format_currency(assets - debts)


def _range_label(ranges: dict, value: str) -> str:
    if not value:
        return ""
    if value in ranges:
        return ranges[value]
    return format_currency(value)


def map_form_to_vqf(
    state: FormState,
    date_format: str = "gb",
    today: Optional[date] = None,
) -> VQFMappingData:
    """Build the structured VQF view of a form."""
    today = today or date.today()
    identity = state.identity()
    entity = state.entity_info
    sole = state.sole_proprietor_info
    sanctions = state.sanctions_info
    transaction = state.transaction_info
    financial = state.financial_info
    controlling = state.controlling_info
    beneficial = state.beneficial_info
    is_sole = state.is_sole_proprietor

    identification = Identification(
        customer_name=identity.name,
        customer_type=CLIENT_TYPE_LABELS.get(state.client_type, "") if state.client_type else "",
        uid=sole.uid if is_sole else entity.uid,
        address=identity.address,
        postal_code=identity.postal,
        city=identity.city,
        country=identity.canton,
        establishment_date=format_date(
            sole.establishment_date if is_sole else entity.incorporation_date, date_format
        ),
        purpose=entity.purpose,
        is_listed=entity.is_listed or "no",
        exchange_name=entity.exchange_name,
        owner_name=sole.owner_name,
        owner_dob=format_date(sole.owner_dob, date_format),
        owner_nationality=sole.owner_nationality,
        owner_address=sole.owner_address,
    )

    risk_profile = RiskProfile(
        foreign_pep=sanctions.pep_type == PepType.FOREIGN,
        domestic_pep=sanctions.pep_type == PepType.DOMESTIC,
        high_risk_country=len(sanctions.sanctioned_countries) > 0,
        senior_executive_decision="Approved" if sanctions.is_pep else "n.a.- not needed",
        decision_date=format_date(today, date_format),
    )

    customer_profile = CustomerProfile(
        business_activity=state.business_activity.profession_activity,
        industry=identity.industry,
        expected_transactions=transaction.asset_nature,
        expected_volume=format_currency(transaction.monthly_volume),
        source_of_funds=transaction.asset_origin,
        risk_level=map_risk_level(state).value,
    )

    ownership = "25% or more" if controlling.is_25_percent else "Less than 25%"
    form_a = FormA(
        establishing_persons=[
            FormAPerson(
                name=p.name,
                address=p.address,
                postal=p.postal,
                city=p.city,
                country=p.country,
                dob=format_date(p.dob, date_format),
                nationality=p.nationality,
                authorization=AUTHORIZATION_TYPES.get(p.toa, p.toa),
            )
            for p in state.establishing_persons
        ],
        controlling_persons=[
            FormAPerson(
                name=p.full_name,
                address=p.address,
                postal=p.postal,
                city=p.city,
                country=p.country,
                dob=format_date(p.dob, date_format),
                nationality=p.nationality,
                ownership=ownership,
            )
            for p in (controlling.controlling_persons if controlling.is_controlled else [])
        ],
        # empty for a sole owner, whatever the list held
        beneficial_owners=[
            FormAPerson(
                name=o.full_name,
                address=o.address,
                dob=format_date(o.dob, date_format),
                nationality=o.nationality,
                ownership=o.relationship,
            )
            for o in beneficial.effective_owners
        ],
        sole_owner_ownership="100%" if beneficial.is_sole_owner else "",
    )

    form_k = FormK(
        financial_information=FinancialInformation(
            annual_revenue=_range_label(REVENUE_RANGES, financial.annual_revenue),
            assets=_range_label(ASSET_RANGES, financial.total_assets),
            liabilities=_range_label(LIABILITY_RANGES, financial.liabilities),
            net_worth=_net_worth(financial.total_assets, financial.liabilities),
        ),
        transaction_profile=TransactionProfile(
            typical_transaction_size=format_currency(transaction.monthly_volume),
            frequency=transaction.asset_category,
            purpose=", ".join(transaction.business_purposes),
            counterparties=state.business_activity.target_clients,
        ),
    )

    metadata = Metadata(
        submission_date=format_date(today, date_format),
        vqf_member_number=settings.VQF_MEMBER_NUMBER,
        amla_file_number="",
        completed_by=settings.COMPLIANCE_OFFICER or "",
        language=settings.DOCUMENT_LANGUAGE,
    )

    return VQFMappingData(
        identification=identification,
        risk_profile=risk_profile,
        customer_profile=customer_profile,
        form_a=form_a,
        form_k=form_k,
        metadata=metadata,
    )


def _person_rows(persons: List[FormAPerson]) -> List[Dict[str, str]]:
    return [p.model_dump(exclude_none=True) for p in persons]


def generate_document_data(
    state: FormState,
    date_format: str = "gb",
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Flatten the VQF view into the general document payload.
    Person lists stay lists of dicts; flags become "Yes"/"No".
    """
    vqf = map_form_to_vqf(state, date_format, today)
    ident = vqf.identification
    risk = vqf.risk_profile
    profile = vqf.customer_profile
    financials = vqf.form_k.financial_information
    transactions = vqf.form_k.transaction_profile
    meta = vqf.metadata

    return {
        # Identification
        "customerName": ident.customer_name,
        "customerType": ident.customer_type,
        "uid": ident.uid,
        "address": ident.address,
        "postalCode": ident.postal_code,
        "city": ident.city,
        "country": ident.country,
        "establishmentDate": ident.establishment_date,
        "purpose": ident.purpose,
        "isListed": ident.is_listed,
        "exchangeName": ident.exchange_name,
        "ownerName": ident.owner_name,
        "ownerDob": ident.owner_dob,
        "ownerNationality": ident.owner_nationality,
        "ownerAddress": ident.owner_address,

        # Risk profile
        "foreignPEP": yes_no(risk.foreign_pep),
        "domesticPEP": yes_no(risk.domestic_pep),
        "highRiskCountry": yes_no(risk.high_risk_country),
        "seniorExecutiveDecision": risk.senior_executive_decision,
        "decisionDate": risk.decision_date,

        # Customer profile
        "businessActivity": profile.business_activity,
        "industry": profile.industry,
        "expectedTransactions": profile.expected_transactions,
        "expectedVolume": profile.expected_volume,
        "sourceOfFunds": profile.source_of_funds,
        "riskLevel": profile.risk_level,

        # Form-A
        "establishingPersons": _person_rows(vqf.form_a.establishing_persons),
        "controllingPersons": _person_rows(vqf.form_a.controlling_persons),
        "beneficialOwners": _person_rows(vqf.form_a.beneficial_owners),
        "soleOwnerOwnership": vqf.form_a.sole_owner_ownership,

        # Form-K
        "annualRevenue": financials.annual_revenue,
        "assets": financials.assets,
        "liabilities": financials.liabilities,
        "netWorth": financials.net_worth,
        "typicalTransactionSize": transactions.typical_transaction_size,
        "frequency": transactions.frequency,
        "transactionPurpose": transactions.purpose,
        "counterparties": transactions.counterparties,

        # Metadata
        "submissionDate": meta.submission_date,
        "vqfMemberNumber": meta.vqf_member_number,
        "amlaFileNumber": meta.amla_file_number,
        "completedBy": meta.completed_by,
        "language": meta.language,
    }


def validate_vqf_data(vqf: VQFMappingData) -> List[str]:
    """Business checks on the VQF view. Returns a list of error messages."""
    errors = []

    if not vqf.identification.customer_name:
        errors.append("Customer name is required")
    if not vqf.identification.address:
        errors.append("Customer address is required")
    if not vqf.identification.establishment_date:
        errors.append("Establishment date is required")
    if not vqf.form_a.establishing_persons:
        errors.append("At least one establishing person is required")

    decision = vqf.risk_profile.senior_executive_decision
    if vqf.risk_profile.foreign_pep and not decision:
        errors.append("Senior executive decision is required for foreign PEP relationships")
    if vqf.risk_profile.high_risk_country and not decision:
        errors.append("Senior executive decision is required for high-risk country relationships")

    return errors


# ============================================================================
# TEMPLATE FIELD MAPPING
# ============================================================================

def _form_sources(state: FormState, date_format: str, today: date) -> Dict[str, Any]:
    """Sources read by the numbered and placeholder-keyed templates."""
    identity = state.identity()
    sanctions = state.sanctions_info
    purposes = state.transaction_info.business_purposes

    sources = {
        "today": format_date(today, date_format),
        "identity.name": identity.name,
        "identity.address": identity.address,
        "identity.postal": identity.postal,
        "identity.city": identity.city,
        "identity.canton": identity.canton,
        "identity.phone": identity.phone,
        "identity.email": identity.email,
        "identity.industry": identity.industry,
        "identity.location": " ".join(
            part for part in (identity.canton, identity.city, identity.address, identity.postal) if part
        ),
        "entity.hasRegisterExtract": format_flag(state.entity_info.has_register_extract),
        "entity.hasArticles": format_flag(state.entity_info.has_articles),
        "transaction.firstBusinessPurpose": purposes[0] if purposes else "",
        "pep.position": sanctions.pep.position if isinstance(sanctions.pep, Pep) else "",
        "risk.summary": classify_risk(state).summary(),
        "risk.isForeignPep": format_flag(sanctions.is_pep and sanctions.pep_type == PepType.FOREIGN),
        "risk.isDomesticPep": format_flag(sanctions.is_pep and sanctions.pep_type == PepType.DOMESTIC),
        "assessor": settings.COMPLIANCE_OFFICER or "",
    }

    if state.establishing_persons:
        first = state.establishing_persons[0]
        sources.update({
            "firstEstablishingPerson.name": first.name,
            "firstEstablishingPerson.address": first.address,
            "firstEstablishingPerson.dob": format_date(first.dob, date_format),
            "firstEstablishingPerson.nationality": first.nationality,
            "firstEstablishingPerson.toa": first.toa,
            "firstEstablishingPerson.hasIdDocument": format_flag(first.has_id_document),
            "firstEstablishingPerson.hasPowerOfAttorney": format_flag(first.has_power_of_attorney),
        })

    return sources


def map_to_template_fields(
    state: FormState,
    template_id: str,
    today: Optional[date] = None,
) -> Dict[str, Union[str, bool]]:
    """
    Map a form onto one template's field contract.

    Args:
        state: Form state (read only)
        template_id: One of 902.1e, 902.4e, 902.5e, 902.9e, 902.11e
        today: Date printed on the document (defaults to today)

    Returns:
        Dict of template key -> value, every contract key present

    Raises:
        UnknownTemplateError: template_id is not a VQF template
        MappingError: establishing person #1 is missing where the template reads it
    """
    schema = get_template_schema(template_id)
    today = today or date.today()

    sources = generate_document_data(state, schema.date_format, today)
    sources.update(_form_sources(state, schema.date_format, today))

    fields: Dict[str, Union[str, bool]] = {}
    for key, source in schema.fields.items():
        if source.startswith(CONST_PREFIX):
            fields[key] = source[len(CONST_PREFIX):]
            continue
        if source not in sources:
            if source.startswith(FIRST_PERSON_PREFIX):
                raise MappingError(f"{template_id} requires at least one establishing person")
            raise MappingError(f"{template_id} field '{key}' reads unknown source '{source}'")
        fields[key] = _placeholder(sources[source])

    for prefix, source in schema.lists.items():
        for i, row in enumerate(sources.get(source, [])):
            for attr, value in row.items():
                fields[f"{prefix}[{i}].{attr}"] = _placeholder(value)

    logger.debug(f"[Mapper] {template_id}: {len(fields)} fields")
    return fields
