"""
Test Suite: Validation Rules

Tests:
1. Field predicates (email, phone, postal code, canton, UID, nationality)
2. Date bounds
3. Business volume range
4. File checks
5. Field dispatch priority
6. Whole-form validation
"""

import sys
import os
from datetime import date, timedelta

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import re
import pytest


def test_email_and_phone():
    """Test email and Swiss phone predicates."""
    print("\nTEST 1: Email and Phone")
    print("-" * 40)

    from backend.form_validator import validate_email, validate_swiss_phone

    assert validate_email("info@muster.ch")
    assert validate_email("first.last+tag@sub.example.com")
    assert not validate_email("")
    assert not validate_email("no-at-sign.ch")
    assert not validate_email("user@domain")
    assert not validate_email("info@muster.ch\n")
    assert not validate_email(" info@muster.ch")
    print("   Email pattern OK")

    assert validate_swiss_phone("+41 44 123 45 67")
    assert validate_swiss_phone("044 123 45 67")
    assert validate_swiss_phone("0791234567")
    assert not validate_swiss_phone("+41 04 123 45 67")
    assert not validate_swiss_phone("44 123 45 67")
    assert not validate_swiss_phone("+49 30 123 45 67")
    assert not validate_swiss_phone("")
    assert not validate_swiss_phone("0441234567x")
    print("   Swiss phone pattern OK")

    print(" PASSED: Email and phone")


@pytest.mark.parametrize("postal", ["1000", "8001", "9999", "0999", "999", "10000", "80a1", "", " 8001"])
def test_postal_code_matches_pattern(postal):
    """validate_swiss_postal_code is true exactly when ^[1-9]\\d{3}$ matches."""
    from backend.form_validator import validate_swiss_postal_code

    expected = re.fullmatch(r"[1-9]\d{3}", postal) is not None
    assert validate_swiss_postal_code(postal) == expected


def test_uid_canton_nationality():
    """Test UID, canton and nationality predicates."""
    print("\nTEST 2: UID, Canton, Nationality")
    print("-" * 40)

    from backend.form_validator import validate_uid, validate_swiss_canton, validate_nationality

    assert validate_uid("")
    assert validate_uid("CHE-123.456.789")
    assert not validate_uid("CHE123456789")
    assert not validate_uid("CHE-12.456.789")
    print("   UID OK (empty is valid)")

    assert validate_swiss_canton("ZH")
    assert validate_swiss_canton("vd")
    assert not validate_swiss_canton("XX")
    assert not validate_swiss_canton("")
    print("   Canton OK (case-insensitive)")

    assert validate_nationality("Swiss")
    assert validate_nationality("swiss-german")
    assert validate_nationality("Xy")
    assert not validate_nationality("X")
    print("   Nationality OK (lenient)")

    print(" PASSED: UID, canton, nationality")


def test_date_bounds():
    """Future dates and dates older than 120 years are rejected."""
    print("\nTEST 3: Date Bounds")
    print("-" * 40)

    from backend.form_validator import validate_date

    today = date(2024, 6, 15)
    assert validate_date("1980-05-17", today)
    assert validate_date(today, today)
    assert not validate_date("2024-06-16", today)
    assert not validate_date(today + timedelta(days=365), today)
    assert validate_date("1904-06-15", today)
    assert not validate_date("1904-06-14", today)
    assert not validate_date("2023-02-30", today)
    assert not validate_date("not a date", today)
    assert not validate_date("", today)
    assert not validate_date(None, today)

    # relative to the real clock
    assert not validate_date((date.today() + timedelta(days=1)).isoformat())
    print("   Date bounds OK")

    print(" PASSED: Date bounds")


def test_business_volume():
    """Scenario D: 1,000,000,001 is out of range."""
    print("\nTEST 4: Business Volume")
    print("-" * 40)

    from backend.form_validator import validate_business_volume, validate_form_field

    assert validate_business_volume(0)
    assert validate_business_volume(1_000_000_000)
    assert not validate_business_volume(1_000_000_001)
    assert not validate_business_volume(-1)

    error = validate_form_field("monthly_volume", 1_000_000_001)
    assert error == "Monthly volume must be between 0 and 1,000,000,000 CHF"
    assert validate_form_field("monthly_volume", None) == "Monthly volume is required"
    assert validate_form_field("monthly_volume", "abc") == "Please enter a valid positive number"
    assert validate_form_field("monthly_volume", -5) == "Please enter a valid positive number"
    assert validate_form_field("monthly_volume", 0) is None
    print(f"   Range error: {error}")

    print(" PASSED: Business volume")


def test_file_checks():
    """File checks run before required-ness."""
    print("\nTEST 5: File Checks")
    print("-" * 40)

    from config.form_schema import UploadedFile
    from backend.form_validator import (
        validate_file,
        validate_commercial_register_extract,
        validate_articles_of_association,
        validate_id_document,
    )

    ok = UploadedFile(filename="a.pdf", content_type="application/pdf", size=1024)
    too_big = UploadedFile(filename="a.pdf", content_type="application/pdf", size=11 * 1024 * 1024)
    word = UploadedFile(
        filename="a.docx",
        content_type="application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        size=1024,
    )

    assert validate_file(None) is None
    assert validate_file(ok) is None
    assert validate_file(too_big) == "File size must be less than 10MB"
    assert validate_file(word) == "Only PDF, JPG, and PNG files are allowed"
    assert validate_file(word, allow_office_documents=True) is None

    assert validate_commercial_register_extract(None) == "Commercial register extract is required"
    assert validate_articles_of_association(None) == "Articles of association are required"
    assert validate_id_document(None) == "ID document is required"
    assert validate_id_document(too_big) == "File size must be less than 10MB"
    assert validate_id_document(ok) is None
    print("   File checks OK")

    print(" PASSED: File checks")


def test_field_dispatch_priority():
    """Required-ness is reported before format."""
    print("\nTEST 6: Field Dispatch")
    print("-" * 40)

    from backend.form_validator import validate_form_field, validate_video_date

    assert validate_form_field("postal", "") == "Postal code is required"
    assert validate_form_field("postal", "0123") == "Please enter a valid Swiss postal code (4 digits, 1000-9999)"
    assert validate_form_field("postal", "0123", {"is_swiss": False}) is None
    assert validate_form_field("email", "") == "Email is required"
    assert validate_form_field("email", "bad") == "Please enter a valid email address"
    assert validate_form_field("canton", "XX") == "Please select a valid Swiss canton"
    assert validate_form_field("name", "A") == "Name must be at least 2 characters long"
    assert validate_form_field("name", "A" * 101) == "Name must be less than 100 characters"
    assert validate_form_field("address", "abc") == "Address must be at least 5 characters long"
    assert validate_form_field("purpose", "short") == "Company purpose must be at least 10 characters long"
    assert validate_form_field("is_listed", "maybe") == "Please select Yes or No"
    assert validate_form_field("exchange_name", "", {"is_listed": "yes"}) == \
        "Exchange name is required when company is listed"
    assert validate_form_field("exchange_name", "", {"is_listed": "no"}) is None
    assert validate_form_field("uid", "") is None
    assert validate_form_field("uid", "", {"uid_required": True}) == "UID number is required"
    assert validate_form_field("industry", "banking") == "Please select a valid industry from the list"
    assert validate_form_field("phone", "") is None
    assert validate_form_field("unknown_field", "", {"required": True}) == "This field is required"
    assert validate_form_field("unknown_field", "") is None
    print("   Dispatch messages OK")

    today = date(2024, 6, 15)
    assert validate_video_date("2024-06-15", today) is not None
    assert validate_video_date("2024-06-16", today) is None
    assert validate_video_date("2024-07-16", today) is None
    assert validate_video_date("2024-07-17", today) is not None
    assert validate_video_date("", today) == "Video call date is required"
    print("   Video window OK")

    print(" PASSED: Field dispatch")


def test_complete_form_is_valid(complete_form, sole_form):
    """The fixtures pass validation."""
    from backend.form_validator import validate_form_data

    assert validate_form_data(complete_form) == {}
    assert validate_form_data(sole_form) == {}


def test_empty_form_errors():
    """An empty form reports errors per section path."""
    print("\nTEST 7: Empty Form")
    print("-" * 40)

    from config.form_schema import FormState
    from backend.form_validator import validate_form_data, format_validation_error

    errors = validate_form_data(FormState())
    assert errors["client_type"] == "Please select a client type"
    assert errors["company_info.name"] == "Name is required"
    assert errors["establishing_persons"] == "At least one establishing person is required"
    assert errors["terms_info"] == "You must accept all terms and conditions"
    assert errors["verification_info.verification_method"] == "Please select a verification method"
    assert errors["transaction_info.monthly_volume"] == "Monthly volume is required"
    assert "entity_info.uid" not in errors
    print(f"   {len(errors)} errors on an empty form")

    message = format_validation_error("company_info.name", errors["company_info.name"])
    assert message == "Company Name: Name is required"
    assert format_validation_error("custom.path", "Oops") == "custom.path: Oops"

    print(" PASSED: Empty form")


def test_conditional_sections(llc_store):
    """PEP, sanctions and video details are only required on their yes branch."""
    print("\nTEST 8: Conditional Sections")
    print("-" * 40)

    from backend.form_validator import validate_form_data

    llc_store.dispatch("set_sanctions_info_field", field="is_pep", value=True)
    errors = validate_form_data(llc_store.state)
    assert errors["sanctions_info.pep.position"] == "This field is required"
    assert errors["sanctions_info.pep_type"] == "PEP type must be specified when PEP status is true"
    print("   PEP details required when is_pep")

    llc_store.dispatch("set_sanctions_info_field", field="is_pep", value=False)
    assert validate_form_data(llc_store.state) == {}

    llc_store.dispatch("set_verification_info_field", field="verification_method", value="video")
    errors = validate_form_data(llc_store.state)
    assert errors["verification_info.video_date"] == "Video call date is required"
    assert errors["verification_info.video_time"] == "Video call time is required"

    booked = (date.today() + timedelta(days=3)).isoformat()
    llc_store.dispatch("set_verification_info_field", field="video_date", value=booked)
    llc_store.dispatch("set_verification_info_field", field="video_time", value="10:30")
    assert validate_form_data(llc_store.state) == {}
    print("   Video booking required when method is video")

    print(" PASSED: Conditional sections")


def test_foreign_client_skips_swiss_formats():
    """Foreign clients are checked for presence, not Swiss formats."""
    from conftest import build_store
    from backend.form_validator import validate_form_data

    store = build_store("foreign_llc")
    store.dispatch("set_company_info_field", field="postal", value="10115")
    store.dispatch("set_company_info_field", field="canton", value="Berlin")
    store.dispatch("set_company_info_field", field="phone", value="+49 30 1234567")

    assert validate_form_data(store.state) == {}


def test_uid_required_switch(monkeypatch, llc_store):
    """UID_REQUIRED makes the UID mandatory for companies."""
    from config.settings import settings
    from backend.form_validator import validate_form_data

    llc_store.dispatch("set_entity_info_field", field="uid", value="")
    assert "entity_info.uid" not in validate_form_data(llc_store.state)

    monkeypatch.setattr(settings, "UID_REQUIRED", True)
    assert validate_form_data(llc_store.state)["entity_info.uid"] == "UID number is required"


def test_person_lists_from_raw_input(complete_form):
    """Section limits and gates hold for forms that did not go through the store."""
    print("\nTEST 9: Person Lists From Raw Input")
    print("-" * 40)

    from config.form_schema import FormState
    from backend.form_validator import validate_form_data

    person = complete_form.controlling_info.controlling_persons[0].model_dump()
    owner = {
        "first_name": "Eva", "last_name": "Meier", "dob": "1982-04-02",
        "nationality": "Swiss", "address": "Seestrasse 12", "relationship": "spouse",
    }

    data = complete_form.model_dump()
    data["controlling_info"]["controlling_persons"] = [dict(person, id=f"cp{i}") for i in range(6)]
    data["beneficial_info"] = {
        "is_sole_owner": False,
        "beneficial_owners": [dict(owner, id=f"bo{i}") for i in range(12)],
    }
    errors = validate_form_data(FormState.model_validate(data))
    assert errors["controlling_info.controlling_persons"] == "At most 4 controlling persons can be listed"
    assert errors["beneficial_info.beneficial_owners"] == "At most 10 beneficial owners can be listed"
    print("   Over-long lists rejected")

    data["controlling_info"]["is_25_percent"] = False
    data["controlling_info"]["in_other_way"] = False
    data["controlling_info"]["controlling_persons"] = [person]
    data["controlling_info"]["managing_director"] = {"first_name": "Eva", "last_name": "Meier"}
    data["beneficial_info"]["beneficial_owners"] = [dict(owner, id="bo0")]
    errors = validate_form_data(FormState.model_validate(data))
    assert errors == {
        "controlling_info.controlling_persons":
            "Controlling persons can only be listed when a control question is answered yes",
    }
    print("   Controlling persons without a yes answer rejected")

    print(" PASSED: Person lists from raw input")
