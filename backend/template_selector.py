"""
Template Selector - Which VQF documents a form requires.

Order is the submission order: 902.1e, 902.4e, 902.5e, 902.9e, 902.11e.
"""

import logging
from typing import List, Optional

from config.settings import settings
from config.form_schema import FormState
from config.template_registry import TemplateId
from backend.risk_classifier import RiskResult, classify_risk

logger = logging.getLogger(__name__)


def select_templates(state: FormState, risk: RiskResult) -> List[str]:
    """
    Select the templates to generate.

    - 902.1e (Identification) always
    - 902.4e (Risk Profile) for high risk clients
    - 902.5e (Customer Profile) and 902.9e (Form-A) for companies and associations
    - 902.11e (Form-K) when enabled and controlling persons were declared
    """
    templates = [TemplateId.IDENTIFICATION.value]

    if risk.is_high_risk:
        templates.append(TemplateId.RISK_PROFILE.value)

    client_type = state.client_type.value if state.client_type else ""
    if "llc" in client_type or "assoc" in client_type:
        templates.append(TemplateId.CUSTOMER_PROFILE.value)
        templates.append(TemplateId.FORM_A.value)

    controlling = state.controlling_info
    if settings.ENABLE_FORM_K and controlling.is_controlled and controlling.controlling_persons:
        templates.append(TemplateId.FORM_K.value)

    # dedupe, keep first occurrence
    return list(dict.fromkeys(templates))


def get_templates_to_generate(state: FormState, risk: Optional[RiskResult] = None) -> List[str]:
    """Run the risk classifier (unless given) and select templates."""
    risk = risk or classify_risk(state)
    templates = select_templates(state, risk)
    logger.info(f"[Templates] Selected {', '.join(templates)}")
    return templates
