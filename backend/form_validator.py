"""
Form Validator - Swiss AML/KYC validation rules for the onboarding wizard.

Provides:
- Field predicates (email, Swiss phone, postal code, canton, UID, dates, volumes)
- File checks for uploaded documents
- Field dispatch returning one user-facing message per field
- Complete form validation with error aggregation by field path
"""

import re
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional, Union

from config.settings import settings
from config.form_schema import (
    FormState,
    UploadedFile,
    INDUSTRIES,
    AUTHORIZATION_TYPES,
    OWNER_RELATIONSHIPS,
    REVENUE_RANGES,
    ASSET_RANGES,
    LIABILITY_RANGES,
    VIDEO_TIME_SLOTS,
    Pep,
    SanctionsTies,
    VerificationMethod,
    MAX_CONTROLLING_PERSONS,
    MAX_BENEFICIAL_OWNERS,
)


class FormValidationError(Exception):
    """Raised when a form fails the submission gate."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__(f"{len(self.errors)} field(s) failed validation")


EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
SWISS_PHONE_PATTERN = re.compile(r"^(\+41|0)[1-9]\d{8}$")
SWISS_POSTAL_PATTERN = re.compile(r"^[1-9]\d{3}$")
UID_PATTERN = re.compile(r"^CHE-\d{3}\.\d{3}\.\d{3}$")

MAX_BUSINESS_VOLUME = 1_000_000_000
MAX_AGE_YEARS = 120
VIDEO_BOOKING_WINDOW_DAYS = 30

SWISS_CANTONS = [
    "AG", "AI", "AR", "BE", "BL", "BS", "FR", "GE", "GL", "GR",
    "JU", "LU", "NE", "NW", "OW", "SG", "SH", "SO", "SZ", "TG",
    "TI", "UR", "VD", "VS", "ZG", "ZH",
]

COMMON_NATIONALITIES = [
    "Swiss", "German", "French", "Italian", "Austrian", "American", "British",
    "Canadian", "Australian", "Chinese", "Indian", "Brazilian", "Russian",
    "Japanese", "Korean", "Spanish", "Portuguese", "Dutch", "Belgian",
    "Swedish", "Norwegian", "Danish", "Finnish", "Polish", "Czech",
    "Hungarian", "Slovak", "Slovenian", "Croatian", "Serbian", "Bulgarian",
    "Romanian", "Greek", "Turkish", "Ukrainian", "Belarusian", "Moldovan",
    "Georgian", "Armenian", "Azerbaijani", "Kazakh", "Uzbek", "Kyrgyz",
    "Tajik", "Turkmen", "Mongolian", "Vietnamese", "Thai", "Malaysian",
    "Indonesian", "Filipino", "Pakistani", "Bangladeshi", "Sri Lankan",
    "Nepali", "Bhutanese", "Myanmar", "Cambodian", "Laotian", "Bruneian",
    "Timorese", "Papua New Guinean", "Fijian", "Vanuatuan", "Solomon Islander",
    "Samoan", "Tongan", "Kiribati", "Tuvaluan", "Nauruan", "Palauan",
    "Marshallese", "Micronesian",
]

FIELD_LABELS = {
    "client_type": "Client Type",
    "company_info.name": "Company Name",
    "company_info.address": "Company Address",
    "company_info.postal": "Postal Code",
    "company_info.city": "City",
    "company_info.canton": "Canton",
    "company_info.phone": "Phone",
    "company_info.email": "Email",
    "company_info.industry": "Industry",
    "entity_info.uid": "UID Number",
    "entity_info.incorporation_date": "Incorporation Date",
    "entity_info.purpose": "Company Purpose",
    "entity_info.is_listed": "Listed Company",
    "entity_info.exchange_name": "Stock Exchange",
    "entity_info.register_file": "Commercial Register Extract",
    "entity_info.articles_file": "Articles of Association",
    "sole_proprietor_info.owner_name": "Owner Name",
    "sole_proprietor_info.owner_dob": "Owner Date of Birth",
    "sole_proprietor_info.owner_nationality": "Owner Nationality",
    "sole_proprietor_info.owner_address": "Owner Address",
    "sole_proprietor_info.postal": "Postal Code",
    "sole_proprietor_info.city": "City",
    "sole_proprietor_info.canton": "Canton",
    "sole_proprietor_info.email": "Email",
    "sole_proprietor_info.industry": "Industry",
    "sole_proprietor_info.establishment_date": "Establishment Date",
    "sole_proprietor_info.uid": "UID Number",
    "establishing_persons": "Establishing Persons",
    "controlling_info.controlling_persons": "Controlling Persons",
    "beneficial_info.beneficial_owners": "Beneficial Owners",
    "business_activity.profession_activity": "Business Activities",
    "business_activity.business_description": "Business Description",
    "business_activity.target_clients": "Target Clients",
    "business_activity.main_countries": "Main Countries",
    "financial_info.annual_revenue": "Annual Revenue",
    "financial_info.total_assets": "Total Assets",
    "financial_info.liabilities": "Liabilities",
    "transaction_info.monthly_volume": "Monthly Volume",
    "transaction_info.business_purposes": "Business Purposes",
    "sanctions_info.pep_type": "PEP Type",
    "terms_info": "Terms and Conditions",
    "verification_info.verification_method": "Verification Method",
    "verification_info.video_date": "Video Date",
    "verification_info.video_time": "Video Time",
}


# ============================================================================
# FIELD PREDICATES
# ============================================================================

def validate_required(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return len(value.strip()) > 0
    if isinstance(value, (list, dict, tuple, set)):
        return len(value) > 0
    return True


def validate_minimum_length(value: Optional[str], min_length: int) -> bool:
    return isinstance(value, str) and len(value.strip()) >= min_length


def validate_maximum_length(value: Optional[str], max_length: int) -> bool:
    return isinstance(value, str) and len(value.strip()) <= max_length


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


def validate_number(value: Any) -> bool:
    return _to_number(value) is not None


def validate_positive_number(value: Any) -> bool:
    number = _to_number(value)
    return number is not None and number > 0


def validate_email(email: Optional[str]) -> bool:
    """Validate an email address (local@domain.tld)."""
    if not isinstance(email, str) or not email:
        return False
    return EMAIL_PATTERN.fullmatch(email) is not None


def validate_swiss_phone(phone: Optional[str]) -> bool:
    """
    Validate a Swiss phone number.
    Format: +41 XX XXX XX XX or 0XX XXX XX XX (whitespace ignored)
    """
    if not isinstance(phone, str):
        return False
    return SWISS_PHONE_PATTERN.fullmatch(re.sub(r"\s", "", phone)) is not None


def validate_swiss_postal_code(postal: Optional[str]) -> bool:
    """Swiss postal codes are 4 digits, 1000-9999."""
    if not isinstance(postal, str):
        return False
    return SWISS_POSTAL_PATTERN.fullmatch(postal) is not None


def validate_uid(uid: Optional[str]) -> bool:
    """
    Validate a Swiss UID (CHE-XXX.XXX.XXX).
    An empty UID is valid; required-ness is decided by the caller.
    """
    if not uid:
        return True
    return isinstance(uid, str) and UID_PATTERN.fullmatch(uid) is not None


def validate_swiss_canton(canton: Optional[str]) -> bool:
    if not isinstance(canton, str):
        return False
    return canton.strip().upper() in SWISS_CANTONS


def validate_nationality(nationality: Optional[str]) -> bool:
    """Lenient check: a known demonym, or anything of 2+ characters."""
    if not isinstance(nationality, str):
        return False
    lowered = nationality.lower()
    if any(nat.lower() in lowered for nat in COMMON_NATIONALITIES):
        return True
    return len(nationality) >= 2


def validate_business_volume(volume: Any) -> bool:
    number = _to_number(volume)
    return number is not None and 0 <= number <= MAX_BUSINESS_VOLUME


def parse_date(value: Union[str, date, None]) -> Optional[date]:
    """Parse an ISO date (or datetime) string. Returns None when unparseable."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def _years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # 29 February
        return day.replace(year=day.year - years, day=28)


def validate_date(value: Union[str, date, None], today: Optional[date] = None) -> bool:
    """
    Validate a past date such as a birth or incorporation date.
    Must be a real calendar date, not in the future, at most 120 years ago.
    """
    parsed = parse_date(value)
    if parsed is None:
        return False

    today = today or date.today()
    if parsed > today:
        return False
    if parsed < _years_before(today, MAX_AGE_YEARS):
        return False
    return True


# ============================================================================
# ERROR-STRING VALIDATORS
# ============================================================================

def validate_file(
    file: Optional[UploadedFile],
    allow_office_documents: bool = False,
    max_size_mb: Optional[int] = None,
) -> Optional[str]:
    """
    Check size and type of an uploaded file.
    A missing file is not an error here; required-ness is layered on top.
    """
    if file is None:
        return None

    max_size_mb = max_size_mb or settings.MAX_FILE_SIZE_MB
    if file.size > max_size_mb * 1024 * 1024:
        return f"File size must be less than {max_size_mb}MB"

    allowed = list(settings.ALLOWED_FILE_TYPES)
    if allow_office_documents:
        allowed += list(settings.ADDITIONAL_FILE_TYPES)
    if file.content_type not in allowed:
        if allow_office_documents:
            return "Only PDF, JPG, PNG, DOC and DOCX files are allowed"
        return "Only PDF, JPG, and PNG files are allowed"

    return None


def validate_commercial_register_extract(file: Optional[UploadedFile]) -> Optional[str]:
    error = validate_file(file)
    if error:
        return error
    if file is None:
        return "Commercial register extract is required"
    return None


def validate_articles_of_association(file: Optional[UploadedFile]) -> Optional[str]:
    error = validate_file(file)
    if error:
        return error
    if file is None:
        return "Articles of association are required"
    return None


def validate_id_document(file: Optional[UploadedFile]) -> Optional[str]:
    error = validate_file(file)
    if error:
        return error
    if file is None:
        return "ID document is required"
    return None


def validate_industry(industry: Optional[str]) -> Optional[str]:
    if not validate_required(industry):
        return "Industry/Sector is required"
    if industry not in INDUSTRIES:
        return "Please select a valid industry from the list"
    return None


def validate_video_date(value: Union[str, date, None], today: Optional[date] = None) -> Optional[str]:
    """Video calls can be booked from tomorrow up to 30 days after tomorrow."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return "Video call date is required"

    parsed = parse_date(value)
    if parsed is None:
        return "Please enter a valid date"

    earliest = (today or date.today()) + timedelta(days=1)
    latest = earliest + timedelta(days=VIDEO_BOOKING_WINDOW_DAYS)
    if not earliest <= parsed <= latest:
        return (
            f"Video call date must be between {earliest.isoformat()} "
            f"and {latest.isoformat()}"
        )
    return None


# ============================================================================
# FIELD DISPATCH
# ============================================================================

def _check_email(value, context):
    if not validate_required(value):
        return "Email is required"
    if not validate_email(value):
        return "Please enter a valid email address"
    return None


def _check_phone(value, context):
    if not validate_required(value) or not context.get("is_swiss", True):
        return None
    if not validate_swiss_phone(value):
        return "Please enter a valid Swiss phone number (e.g., +41 44 123 45 67 or 044 123 45 67)"
    return None


def _check_postal(value, context):
    if not validate_required(value):
        return "Postal code is required"
    if context.get("is_swiss", True) and not validate_swiss_postal_code(value):
        return "Please enter a valid Swiss postal code (4 digits, 1000-9999)"
    return None


def _check_canton(value, context):
    if not validate_required(value):
        return "Canton is required"
    if context.get("is_swiss", True) and not validate_swiss_canton(value):
        return "Please select a valid Swiss canton"
    return None


def _check_city(value, context):
    if not validate_required(value):
        return "City is required"
    return None


def _check_uid(value, context):
    if not validate_required(value):
        return "UID number is required" if context.get("uid_required") else None
    if not validate_uid(value):
        return "Please enter a valid UID number (format: CHE-XXX.XXX.XXX)"
    return None


def _check_date(value, context):
    if value is None or (isinstance(value, str) and not value.strip()):
        return "Date is required"
    if not validate_date(value, context.get("today")):
        return "Please enter a valid date"
    return None


def _check_monthly_volume(value, context):
    if value is None or (isinstance(value, str) and not value.strip()):
        return "Monthly volume is required"
    number = _to_number(value)
    if number is None or number < 0:
        return "Please enter a valid positive number"
    if not validate_business_volume(number):
        return "Monthly volume must be between 0 and 1,000,000,000 CHF"
    return None


def _check_nationality(value, context):
    if not validate_required(value):
        return "Nationality is required"
    if not validate_nationality(value):
        return "Please enter a valid nationality"
    return None


def _check_name(value, context):
    if not validate_required(value):
        return "Name is required"
    if not validate_minimum_length(value, 2):
        return "Name must be at least 2 characters long"
    if not validate_maximum_length(value, 100):
        return "Name must be less than 100 characters"
    return None


def _check_first_name(value, context):
    return None if validate_required(value) else "First name is required"


def _check_last_name(value, context):
    return None if validate_required(value) else "Last name is required"


def _check_address(value, context):
    if not validate_required(value):
        return "Address is required"
    if not validate_minimum_length(value, 5):
        return "Address must be at least 5 characters long"
    return None


def _check_purpose(value, context):
    if not validate_required(value):
        return "Company purpose is required"
    if not validate_minimum_length(value, 10):
        return "Company purpose must be at least 10 characters long"
    return None


def _check_is_listed(value, context):
    if not validate_required(value):
        return "Please indicate if the company is listed"
    if value not in ("yes", "no"):
        return "Please select Yes or No"
    return None


def _check_exchange_name(value, context):
    if context.get("is_listed") == "yes" and not validate_required(value):
        return "Exchange name is required when company is listed"
    return None


def _check_authorization(value, context):
    if not validate_required(value):
        return "Type of authorization is required"
    if value not in AUTHORIZATION_TYPES:
        return "Please select a valid type of authorization"
    return None


def _check_relationship(value, context):
    if not validate_required(value):
        return "Relationship is required"
    if value not in OWNER_RELATIONSHIPS:
        return "Please select a valid relationship"
    return None


def _check_video_date(value, context):
    if context.get("verification_method") != VerificationMethod.VIDEO:
        return None
    return validate_video_date(value, context.get("today"))


def _check_video_time(value, context):
    if context.get("verification_method") != VerificationMethod.VIDEO:
        return None
    if not validate_required(value):
        return "Video call time is required"
    if value not in VIDEO_TIME_SLOTS:
        return "Please select an available time slot"
    return None


def _check_verification_method(value, context):
    if value is None or value == "":
        return "Please select a verification method"
    return None


FIELD_RULES = {
    "email": _check_email,
    "phone": _check_phone,
    "postal": _check_postal,
    "canton": _check_canton,
    "city": _check_city,
    "uid": _check_uid,
    "industry": lambda value, context: validate_industry(value),
    "dob": _check_date,
    "owner_dob": _check_date,
    "incorporation_date": _check_date,
    "establishment_date": _check_date,
    "monthly_volume": _check_monthly_volume,
    "nationality": _check_nationality,
    "owner_nationality": _check_nationality,
    "name": _check_name,
    "company_name": _check_name,
    "owner_name": _check_name,
    "first_name": _check_first_name,
    "last_name": _check_last_name,
    "address": _check_address,
    "owner_address": _check_address,
    "register_file": lambda value, context: validate_commercial_register_extract(value),
    "articles_file": lambda value, context: validate_articles_of_association(value),
    "iddoc": lambda value, context: validate_id_document(value),
    "purpose": _check_purpose,
    "is_listed": _check_is_listed,
    "exchange_name": _check_exchange_name,
    "toa": _check_authorization,
    "relationship": _check_relationship,
    "verification_method": _check_verification_method,
    "video_date": _check_video_date,
    "video_time": _check_video_time,
}


def get_validator(field_name: str):
    """Get the rule function for a field, or None for plain required-ness."""
    return FIELD_RULES.get(field_name)


def validate_form_field(
    field_name: str,
    value: Any,
    context: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """
    Validate one field. Rules run in priority order (required before format)
    and the first violation wins.

    Args:
        field_name: Field name without section prefix (e.g. "postal")
        value: Current field value
        context: Sibling values some rules depend on (is_swiss, is_listed,
            uid_required, verification_method, required, today)

    Returns:
        Error message or None
    """
    context = context or {}
    rule = get_validator(field_name)
    if rule:
        return rule(value, context)

    if context.get("required") and not validate_required(value):
        return "This field is required"
    return None


# ============================================================================
# COMPLETE FORM VALIDATION
# ============================================================================

def _check_fields(errors, prefix, record, field_names, context):
    for field_name in field_names:
        error = validate_form_field(field_name, getattr(record, field_name), context)
        if error:
            errors[f"{prefix}.{field_name}"] = error


def _check_selection(errors, path, value, choices, message):
    if not validate_required(value):
        errors[path] = message
    elif value not in choices:
        errors[path] = "Please select a valid option"


def validate_form_data(state: FormState, today: Optional[date] = None) -> Dict[str, str]:
    """
    Validate the whole form section by section.

    Returns:
        Dict of field path -> error message (empty when the form is valid)
    """
    errors: Dict[str, str] = {}
    client_type = state.client_type

    if client_type is None:
        errors["client_type"] = "Please select a client type"

    is_swiss = client_type.is_swiss if client_type else True
    base = {"is_swiss": is_swiss, "today": today}

    # Identity and contact
    if state.is_sole_proprietor:
        sole = state.sole_proprietor_info
        _check_fields(
            errors, "sole_proprietor_info", sole,
            ["owner_name", "owner_address", "postal", "city", "canton", "phone",
             "email", "industry", "owner_dob", "owner_nationality", "establishment_date", "uid"],
            base,
        )
    else:
        _check_fields(
            errors, "company_info", state.company_info,
            ["name", "address", "postal", "city", "canton", "phone", "email", "industry"],
            base,
        )

    # Entity metadata
    if client_type is not None and client_type.is_entity:
        entity = state.entity_info
        entity_context = {
            **base,
            "is_listed": entity.is_listed,
            "uid_required": settings.UID_REQUIRED,
        }
        _check_fields(
            errors, "entity_info", entity,
            ["uid", "incorporation_date", "purpose", "is_listed", "exchange_name",
             "register_file", "articles_file"],
            entity_context,
        )

    # Establishing persons
    if not state.establishing_persons:
        errors["establishing_persons"] = "At least one establishing person is required"
    for i, person in enumerate(state.establishing_persons):
        _check_fields(
            errors, f"establishing_persons[{i}]", person,
            ["name", "address", "dob", "nationality", "toa", "iddoc"],
            base,
        )
        poa_error = validate_file(person.poa)
        if poa_error:
            errors[f"establishing_persons[{i}].poa"] = poa_error

    # Controlling persons / managing director
    controlling = state.controlling_info
    if controlling.is_controlled:
        if not controlling.controlling_persons:
            errors["controlling_info.controlling_persons"] = "At least one controlling person is required"
        elif len(controlling.controlling_persons) > MAX_CONTROLLING_PERSONS:
            errors["controlling_info.controlling_persons"] = (
                f"At most {MAX_CONTROLLING_PERSONS} controlling persons can be listed"
            )
        for i, person in enumerate(controlling.controlling_persons):
            _check_fields(
                errors, f"controlling_info.controlling_persons[{i}]", person,
                ["first_name", "last_name", "dob", "nationality", "address"],
                base,
            )
    else:
        if controlling.controlling_persons:
            errors["controlling_info.controlling_persons"] = (
                "Controlling persons can only be listed when a control question is answered yes"
            )
        _check_fields(
            errors, "controlling_info.managing_director", controlling.managing_director,
            ["first_name", "last_name"],
            base,
        )

    # Beneficial owners
    beneficial = state.beneficial_info
    if not beneficial.is_sole_owner:
        if not beneficial.beneficial_owners:
            errors["beneficial_info.beneficial_owners"] = "At least one beneficial owner is required"
        elif len(beneficial.beneficial_owners) > MAX_BENEFICIAL_OWNERS:
            errors["beneficial_info.beneficial_owners"] = (
                f"At most {MAX_BENEFICIAL_OWNERS} beneficial owners can be listed"
            )
        for i, owner in enumerate(beneficial.beneficial_owners):
            _check_fields(
                errors, f"beneficial_info.beneficial_owners[{i}]", owner,
                ["first_name", "last_name", "dob", "nationality", "address", "relationship"],
                base,
            )

    # Business activity
    activity = state.business_activity
    _check_fields(
        errors, "business_activity", activity,
        ["profession_activity", "business_description", "target_clients"],
        {"required": True},
    )
    if not activity.main_countries:
        errors["business_activity.main_countries"] = "Please select at least one country"

    # Financial ranges
    financial = state.financial_info
    _check_selection(errors, "financial_info.annual_revenue", financial.annual_revenue,
                     REVENUE_RANGES, "Please select an annual revenue range")
    _check_selection(errors, "financial_info.total_assets", financial.total_assets,
                     ASSET_RANGES, "Please select a total assets range")
    _check_selection(errors, "financial_info.liabilities", financial.liabilities,
                     LIABILITY_RANGES, "Please select a liabilities range")

    # Transactions
    transaction = state.transaction_info
    _check_fields(errors, "transaction_info", transaction,
                  ["asset_nature", "asset_origin", "asset_category"], {"required": True})
    volume_error = validate_form_field("monthly_volume", transaction.monthly_volume)
    if volume_error:
        errors["transaction_info.monthly_volume"] = volume_error
    if not transaction.business_purposes:
        errors["transaction_info.business_purposes"] = "Please select at least one business purpose"

    # PEP and sanctions details exist only on the "yes" variants
    sanctions = state.sanctions_info
    if isinstance(sanctions.pep, Pep):
        _check_fields(errors, "sanctions_info.pep", sanctions.pep,
                      ["name", "position", "country", "period"], {"required": True})
        if sanctions.pep_type is None:
            errors["sanctions_info.pep_type"] = "PEP type must be specified when PEP status is true"
    if isinstance(sanctions.sanctions, SanctionsTies):
        _check_fields(errors, "sanctions_info.sanctions", sanctions.sanctions,
                      ["name", "country", "nature"], {"required": True})

    # Terms
    if not state.terms_info.all_accepted:
        errors["terms_info"] = "You must accept all terms and conditions"

    # Verification
    verification = state.verification_info
    verification_context = {**base, "verification_method": verification.verification_method}
    _check_fields(errors, "verification_info", verification,
                  ["verification_method", "video_date", "video_time"], verification_context)

    # Additional documents are optional but must be acceptable files
    additional = state.additional_info
    for slot in ("financial_statements", "business_plan", "licenses_permits", "supporting_documents"):
        error = validate_file(getattr(additional, slot), allow_office_documents=True)
        if error:
            errors[f"additional_info.{slot}"] = error

    return errors


def validate_field_path(state: FormState, path: str, today: Optional[date] = None) -> Optional[str]:
    """Validate the field at one path, in the context of the whole form."""
    return validate_form_data(state, today).get(path)


def format_validation_error(path: str, message: str) -> str:
    """Prefix an error message with the human label of its field."""
    label = FIELD_LABELS.get(path, path)
    return f"{label}: {message}"
