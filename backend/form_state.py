"""
Form State - Named update operations for the onboarding FormState.

Every operation is a pure function (state, **payload) -> new state.
Bounded or gated operations (a 5th controlling person, an owner added while
the client is sole owner) return the state unchanged.

FormStore wraps one session's state and dispatches operations by name.
"""

import logging
from datetime import date
from typing import Any, Dict, Optional

from config.form_schema import (
    FormState,
    FormSection,
    EstablishingPerson,
    ControllingPerson,
    BeneficialOwner,
    NotPep,
    Pep,
    NoSanctions,
    SanctionsTies,
    VerificationMethod,
    ASSET_CATEGORIES,
    MAX_CONTROLLING_PERSONS,
    MAX_BENEFICIAL_OWNERS,
    TOTAL_STEPS,
)
from backend.form_validator import validate_form_data, validate_field_path

logger = logging.getLogger(__name__)


class UnknownActionError(KeyError):
    """Raised when dispatching an action name that has no update operation."""
    pass


# ============================================================================
# HELPERS
# ============================================================================

def _replace(model: FormSection, **changes) -> FormSection:
    """Copy a frozen section with changes applied and validated."""
    return type(model).model_validate({**dict(model), **changes})


def _set_field(model: FormSection, field: str, value: Any) -> FormSection:
    if field not in type(model).model_fields:
        raise ValueError(f"Unknown field '{field}' for {type(model).__name__}")
    return _replace(model, **{field: value})


def _coerce(record_type, record):
    if record is None:
        return record_type()
    if isinstance(record, record_type):
        return record
    return record_type.model_validate(record)


def _update_in_list(items, item_id: str, field: str, value: Any):
    updated = []
    found = False
    for item in items:
        if item.id == item_id:
            if field == "id":
                raise ValueError("Person id cannot be changed")
            item = _set_field(item, field, value)
            found = True
        updated.append(item)
    if not found:
        logger.warning(f"[FormState] No record with id '{item_id}'")
    return updated, found


# ============================================================================
# IDENTITY SECTIONS
# ============================================================================

def set_client_type(state: FormState, client_type) -> FormState:
    return _replace(state, client_type=client_type)


def set_company_info_field(state: FormState, field: str, value: Any) -> FormState:
    return _replace(state, company_info=_set_field(state.company_info, field, value))


def set_sole_proprietor_field(state: FormState, field: str, value: Any) -> FormState:
    return _replace(state, sole_proprietor_info=_set_field(state.sole_proprietor_info, field, value))


def set_entity_info_field(state: FormState, field: str, value: Any) -> FormState:
    """Set an entity field. File slots take an UploadedFile or None."""
    entity = _set_field(state.entity_info, field, value)
    if field == "is_listed" and entity.is_listed != "yes":
        entity = _replace(entity, exchange_name="")
    return _replace(state, entity_info=entity)


# ============================================================================
# ESTABLISHING PERSONS
# ============================================================================

def add_establishing_person(state: FormState, person=None) -> FormState:
    person = _coerce(EstablishingPerson, person)
    return _replace(state, establishing_persons=[*state.establishing_persons, person])


def update_establishing_person(state: FormState, person_id: str, field: str, value: Any) -> FormState:
    persons, found = _update_in_list(state.establishing_persons, person_id, field, value)
    if not found:
        return state
    return _replace(state, establishing_persons=persons)


def remove_establishing_person(state: FormState, person_id: str) -> FormState:
    persons = [p for p in state.establishing_persons if p.id != person_id]
    return _replace(state, establishing_persons=persons)


# ============================================================================
# CONTROLLING PERSONS
# ============================================================================

def set_controlling_info_field(state: FormState, field: str, value: Any) -> FormState:
    """Set one of the gating questions. Both answered no clears the person list."""
    if field not in ("is_25_percent", "in_other_way"):
        raise ValueError(f"Unknown field '{field}' for ControllingInfo")

    controlling = _set_field(state.controlling_info, field, value)
    if not controlling.is_controlled and controlling.controlling_persons:
        controlling = _replace(controlling, controlling_persons=[])
    return _replace(state, controlling_info=controlling)


def add_controlling_person(state: FormState, person=None) -> FormState:
    controlling = state.controlling_info
    if not controlling.is_controlled:
        logger.info("[FormState] Controlling person ignored: no control question answered yes")
        return state
    if len(controlling.controlling_persons) >= MAX_CONTROLLING_PERSONS:
        logger.info(f"[FormState] Controlling person ignored: limit of {MAX_CONTROLLING_PERSONS} reached")
        return state

    person = _coerce(ControllingPerson, person)
    controlling = _replace(controlling, controlling_persons=[*controlling.controlling_persons, person])
    return _replace(state, controlling_info=controlling)


def update_controlling_person(state: FormState, person_id: str, field: str, value: Any) -> FormState:
    persons, found = _update_in_list(state.controlling_info.controlling_persons, person_id, field, value)
    if not found:
        return state
    controlling = _replace(state.controlling_info, controlling_persons=persons)
    return _replace(state, controlling_info=controlling)


def remove_controlling_person(state: FormState, person_id: str) -> FormState:
    persons = [p for p in state.controlling_info.controlling_persons if p.id != person_id]
    controlling = _replace(state.controlling_info, controlling_persons=persons)
    return _replace(state, controlling_info=controlling)


def set_managing_director_field(state: FormState, field: str, value: Any) -> FormState:
    director = _set_field(state.controlling_info.managing_director, field, value)
    controlling = _replace(state.controlling_info, managing_director=director)
    return _replace(state, controlling_info=controlling)


# ============================================================================
# BENEFICIAL OWNERS
# ============================================================================

def set_beneficial_info_field(state: FormState, field: str, value: Any) -> FormState:
    """Only is_sole_owner is settable; switching it on drops every listed owner."""
    if field != "is_sole_owner":
        raise ValueError(f"Unknown field '{field}' for BeneficialInfo")

    beneficial = _set_field(state.beneficial_info, field, value)
    if beneficial.is_sole_owner and beneficial.beneficial_owners:
        beneficial = _replace(beneficial, beneficial_owners=[])
    return _replace(state, beneficial_info=beneficial)


def add_beneficial_owner(state: FormState, owner=None) -> FormState:
    beneficial = state.beneficial_info
    if beneficial.is_sole_owner:
        logger.info("[FormState] Beneficial owner ignored: client is sole owner")
        return state
    if len(beneficial.beneficial_owners) >= MAX_BENEFICIAL_OWNERS:
        logger.info(f"[FormState] Beneficial owner ignored: limit of {MAX_BENEFICIAL_OWNERS} reached")
        return state

    owner = _coerce(BeneficialOwner, owner)
    beneficial = _replace(beneficial, beneficial_owners=[*beneficial.beneficial_owners, owner])
    return _replace(state, beneficial_info=beneficial)


def update_beneficial_owner(state: FormState, owner_id: str, field: str, value: Any) -> FormState:
    owners, found = _update_in_list(state.beneficial_info.beneficial_owners, owner_id, field, value)
    if not found:
        return state
    beneficial = _replace(state.beneficial_info, beneficial_owners=owners)
    return _replace(state, beneficial_info=beneficial)


def remove_beneficial_owner(state: FormState, owner_id: str) -> FormState:
    owners = [o for o in state.beneficial_info.beneficial_owners if o.id != owner_id]
    beneficial = _replace(state.beneficial_info, beneficial_owners=owners)
    return _replace(state, beneficial_info=beneficial)


# ============================================================================
# BUSINESS ACTIVITY / FINANCIALS / TRANSACTIONS
# ============================================================================

def _unique(values):
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def set_business_activity_field(state: FormState, field: str, value: Any) -> FormState:
    if field == "main_countries":
        value = _unique(value or [])
    return _replace(state, business_activity=_set_field(state.business_activity, field, value))


def add_main_country(state: FormState, country: str) -> FormState:
    countries = state.business_activity.main_countries
    if country in countries:
        return state
    return set_business_activity_field(state, "main_countries", [*countries, country])


def remove_main_country(state: FormState, country: str) -> FormState:
    countries = [c for c in state.business_activity.main_countries if c != country]
    return set_business_activity_field(state, "main_countries", countries)


def set_financial_info_field(state: FormState, field: str, value: Any) -> FormState:
    return _replace(state, financial_info=_set_field(state.financial_info, field, value))


def _set_transaction(state: FormState, **changes) -> FormState:
    return _replace(state, transaction_info=_replace(state.transaction_info, **changes))


def set_transaction_nature(state: FormState, value: str) -> FormState:
    return _set_transaction(state, asset_nature=value)


def set_transaction_origin(state: FormState, value: str) -> FormState:
    return _set_transaction(state, asset_origin=value)


def set_transaction_category(state: FormState, value: str) -> FormState:
    return _set_transaction(state, asset_category=value)


def set_is_other_category(state: FormState, value: bool) -> FormState:
    """Leaving the free-text escape drops a category that is not in the list."""
    category = state.transaction_info.asset_category
    if not value and category not in ASSET_CATEGORIES:
        category = ""
    return _set_transaction(state, is_other_category=value, asset_category=category)


def set_transaction_monthly_volume(state: FormState, value: Optional[float]) -> FormState:
    return _set_transaction(state, monthly_volume=value)


def add_business_purpose(state: FormState, purpose: str) -> FormState:
    purposes = state.transaction_info.business_purposes
    if purpose in purposes:
        return state
    return _set_transaction(state, business_purposes=[*purposes, purpose])


def remove_business_purpose(state: FormState, purpose: str) -> FormState:
    purposes = [p for p in state.transaction_info.business_purposes if p != purpose]
    return _set_transaction(state, business_purposes=purposes)


# ============================================================================
# SANCTIONS / TERMS / VERIFICATION / ADDITIONAL
# ============================================================================

def set_sanctions_info_field(state: FormState, field: str, value: Any) -> FormState:
    """
    Set a sanctions field.

    is_pep / is_sanctions switch between the no/yes variants; detail fields
    are addressed as "pep.<field>" or "sanctions.<field>" and only exist on
    the yes variant.
    """
    info = state.sanctions_info

    if field == "is_pep":
        if value and not info.is_pep:
            info = _replace(info, pep=Pep())
        elif not value:
            info = _replace(info, pep=NotPep(), pep_type=None)
    elif field == "is_sanctions":
        if value and not info.is_sanctions:
            info = _replace(info, sanctions=SanctionsTies())
        elif not value:
            info = _replace(info, sanctions=NoSanctions())
    elif field.startswith("pep."):
        if not info.is_pep:
            raise ValueError("PEP details can only be set when is_pep is true")
        info = _replace(info, pep=_set_field(info.pep, field[len("pep."):], value))
    elif field.startswith("sanctions."):
        if not info.is_sanctions:
            raise ValueError("Sanctions details can only be set when is_sanctions is true")
        info = _replace(info, sanctions=_set_field(info.sanctions, field[len("sanctions."):], value))
    elif field in ("pep", "sanctions"):
        raise ValueError(f"Use is_{field} and {field}.<field> to change '{field}'")
    else:
        if field == "sanctioned_countries":
            value = _unique(value or [])
        info = _set_field(info, field, value)

    return _replace(state, sanctions_info=info)


def set_terms_info_field(state: FormState, field: str, value: bool) -> FormState:
    return _replace(state, terms_info=_set_field(state.terms_info, field, value))


def set_verification_info_field(state: FormState, field: str, value: Any) -> FormState:
    """Switching away from a video call drops the booked date and time slot."""
    verification = _set_field(state.verification_info, field, value)
    if field == "verification_method" and verification.verification_method != VerificationMethod.VIDEO:
        verification = _replace(verification, video_date="", video_time="")
    return _replace(state, verification_info=verification)


def set_additional_info_field(state: FormState, field: str, value: Any) -> FormState:
    return _replace(state, additional_info=_set_field(state.additional_info, field, value))


# ============================================================================
# VALIDATION ERRORS / NAVIGATION
# ============================================================================

def set_validation_error(state: FormState, path: str, message: Optional[str]) -> FormState:
    """Store one field's error; a None message clears it."""
    errors = dict(state.validation_errors)
    if message:
        errors[path] = message
    else:
        errors.pop(path, None)
    return _replace(state, validation_errors=errors)


def set_validation_errors(state: FormState, errors: Dict[str, str]) -> FormState:
    return _replace(state, validation_errors=dict(errors))


def clear_validation_errors(state: FormState) -> FormState:
    return _replace(state, validation_errors={})


def set_current_step(state: FormState, step: int) -> FormState:
    if not 1 <= step <= TOTAL_STEPS:
        raise ValueError(f"Step must be between 1 and {TOTAL_STEPS}, got {step}")
    return _replace(state, current_step=step)


def next_step(state: FormState) -> FormState:
    return _replace(state, current_step=min(state.current_step + 1, TOTAL_STEPS))


def previous_step(state: FormState) -> FormState:
    return _replace(state, current_step=max(state.current_step - 1, 1))


def reset_form(state: FormState) -> FormState:
    return FormState()


# ============================================================================
# DISPATCH
# ============================================================================

ACTIONS = {
    fn.__name__: fn
    for fn in (
        set_client_type,
        set_company_info_field,
        set_sole_proprietor_field,
        set_entity_info_field,
        add_establishing_person,
        update_establishing_person,
        remove_establishing_person,
        set_controlling_info_field,
        add_controlling_person,
        update_controlling_person,
        remove_controlling_person,
        set_managing_director_field,
        set_beneficial_info_field,
        add_beneficial_owner,
        update_beneficial_owner,
        remove_beneficial_owner,
        set_business_activity_field,
        add_main_country,
        remove_main_country,
        set_financial_info_field,
        set_transaction_nature,
        set_transaction_origin,
        set_transaction_category,
        set_is_other_category,
        set_transaction_monthly_volume,
        add_business_purpose,
        remove_business_purpose,
        set_sanctions_info_field,
        set_terms_info_field,
        set_verification_info_field,
        set_additional_info_field,
        set_validation_error,
        set_validation_errors,
        clear_validation_errors,
        set_current_step,
        next_step,
        previous_step,
        reset_form,
    )
}


def reduce(state: FormState, action_type: str, payload: Optional[Dict[str, Any]] = None) -> FormState:
    """Apply the update operation named by action_type."""
    reducer = ACTIONS.get(action_type)
    if reducer is None:
        raise UnknownActionError(action_type)
    return reducer(state, **(payload or {}))


class FormStore:
    """
    Holds the FormState of one onboarding session.
    The state is replaced, never mutated, on every dispatch.
    """

    def __init__(self, state: Optional[FormState] = None):
        self._state = state or FormState()

    @property
    def state(self) -> FormState:
        return self._state

    def dispatch(self, action_type: str, **payload) -> FormState:
        self._state = reduce(self._state, action_type, payload)
        return self._state

    def validate_field(self, path: str, today: Optional[date] = None) -> Optional[str]:
        """Re-validate one field (on blur) and store or clear its error."""
        error = validate_field_path(self._state, path, today)
        self._state = set_validation_error(self._state, path, error)
        return error

    def validate_all(self, today: Optional[date] = None) -> Dict[str, str]:
        """Validate the whole form (on submit) and replace the stored errors."""
        errors = validate_form_data(self._state, today)
        self._state = set_validation_errors(self._state, errors)
        if errors:
            logger.info(f"[FormState] Validation found {len(errors)} error(s)")
        return errors

    def reset(self) -> FormState:
        self._state = FormState()
        return self._state
