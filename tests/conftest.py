"""
Shared fixtures: fully populated onboarding forms built through the store.
"""

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from config.form_schema import UploadedFile
from backend.form_state import FormStore


def pdf(name="document.pdf", size=2048):
    return UploadedFile(filename=name, content_type="application/pdf", size=size, content=b"%PDF-1.4")


def build_store(client_type="swiss_llc") -> FormStore:
    """A store holding a form that passes validation for the given client type."""
    store = FormStore()
    store.dispatch("set_client_type", client_type=client_type)

    if "sole" in client_type:
        for field, value in {
            "owner_name": "Anna Muster",
            "owner_address": "Bahnhofstrasse 1",
            "postal": "8001",
            "city": "Zürich",
            "canton": "ZH",
            "phone": "+41 44 123 45 67",
            "email": "anna@muster.ch",
            "industry": "online_publisher",
            "owner_dob": "1980-05-17",
            "owner_nationality": "Swiss",
            "establishment_date": "2015-03-01",
        }.items():
            store.dispatch("set_sole_proprietor_field", field=field, value=value)
    else:
        for field, value in {
            "name": "Muster Payments AG",
            "address": "Bahnhofstrasse 1",
            "postal": "8001",
            "city": "Zürich",
            "canton": "ZH",
            "phone": "044 123 45 67",
            "email": "info@muster-payments.ch",
            "industry": "payment_service_provider",
        }.items():
            store.dispatch("set_company_info_field", field=field, value=value)
        for field, value in {
            "uid": "CHE-123.456.789",
            "incorporation_date": "2018-06-01",
            "purpose": "Payment services for online merchants",
            "is_listed": "no",
            "register_file": pdf("register.pdf"),
            "articles_file": pdf("articles.pdf"),
        }.items():
            store.dispatch("set_entity_info_field", field=field, value=value)

    store.dispatch("add_establishing_person", person={
        "name": "Hans Muster",
        "address": "Seestrasse 10",
        "postal": "8002",
        "city": "Zürich",
        "country": "Switzerland",
        "dob": "1975-01-20",
        "nationality": "Swiss",
        "toa": "individual",
        "iddoc": pdf("passport.pdf"),
    })

    store.dispatch("set_controlling_info_field", field="is_25_percent", value=True)
    store.dispatch("add_controlling_person", person={
        "first_name": "Hans",
        "last_name": "Muster",
        "dob": "1975-01-20",
        "nationality": "Swiss",
        "address": "Seestrasse 10",
        "postal": "8002",
        "city": "Zürich",
        "country": "Switzerland",
    })

    store.dispatch("set_business_activity_field", field="profession_activity", value="Payment processing")
    store.dispatch("set_business_activity_field", field="business_description", value="Card acquiring for webshops")
    store.dispatch("set_business_activity_field", field="target_clients", value="Swiss online merchants")
    store.dispatch("add_main_country", country="Switzerland")

    store.dispatch("set_financial_info_field", field="annual_revenue", value="1m-5m")
    store.dispatch("set_financial_info_field", field="total_assets", value="500k-2m")
    store.dispatch("set_financial_info_field", field="liabilities", value="<50k")

    store.dispatch("set_transaction_nature", value="Client funds")
    store.dispatch("set_transaction_origin", value="Business revenue")
    store.dispatch("set_transaction_category", value="business")
    store.dispatch("set_transaction_monthly_volume", value=250000)
    store.dispatch("add_business_purpose", purpose="payment_processing")

    for field in ("agree_privacy", "agree_terms", "confirm_truth"):
        store.dispatch("set_terms_info_field", field=field, value=True)
    store.dispatch("set_verification_info_field", field="verification_method", value="office")

    return store


@pytest.fixture
def complete_form():
    """Valid swiss_llc form."""
    return build_store("swiss_llc").state


@pytest.fixture
def sole_form():
    """Valid swiss_sole form."""
    return build_store("swiss_sole").state


@pytest.fixture
def llc_store():
    return build_store("swiss_llc")
