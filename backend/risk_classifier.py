"""
Risk Classifier - Rule-based AML risk signal for an onboarding form.

Evaluates six fixed indicators independently:
- Client is a PEP
- PEP type is foreign or international organization
- Family or business relationship with a PEP
- Connection to a sanctioned country
- Complex ownership (more than one beneficial owner)

Returns: is_high_risk (OR of every triggered indicator) and the indicator
list for display. No weights, no numeric score.
"""

import logging
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import List, Optional, Union

from config.form_schema import FormState, PepType

logger = logging.getLogger(__name__)


class RiskLevel(str, Enum):
    """Customer profile risk label printed on the VQF forms."""
    STANDARD = "Standard Risk"
    MEDIUM = "Medium Risk"
    HIGH = "High Risk"


INDICATOR_LABELS = {
    "isPEP": "Client is a Politically Exposed Person (PEP)",
    "pepTypeForeign": "PEP type is Foreign",
    "pepTypeInternational": "PEP type is International Organization",
    "hasPepRelationship": "Family or business relationship with a PEP",
    "hasSanctionedCountry": "Connection to sanctioned country",
    "complexOwnership": "Complex ownership structure (multiple beneficial owners)",
}


@dataclass
class RiskIndicator:
    key: str
    label: str
    triggered: bool


@dataclass
class RiskResult:
    """Result of the risk classification."""
    is_high_risk: bool
    indicators: List[RiskIndicator] = field(default_factory=list)

    @property
    def triggered(self) -> List[RiskIndicator]:
        return [i for i in self.indicators if i.triggered]

    def summary(self) -> str:
        """Labels of the triggered indicators, one sentence each."""
        return "; ".join(i.label for i in self.triggered)

    def to_dict(self) -> dict:
        return asdict(self)


# ============================================================================
# RULE-BASED RISK ENGINE
# ============================================================================

def _evaluate_indicators(state: FormState) -> dict:
    sanctions = state.sanctions_info
    owner_count = len(state.beneficial_info.effective_owners)

    return {
        "isPEP": sanctions.is_pep,
        "pepTypeForeign": sanctions.pep_type == PepType.FOREIGN,
        "pepTypeInternational": sanctions.pep_type == PepType.INTERNATIONAL,
        "hasPepRelationship": sanctions.has_pep_relationship,
        "hasSanctionedCountry": len(sanctions.sanctioned_countries) > 0,
        "complexOwnership": owner_count > 1,
    }


def classify_risk(state: FormState) -> RiskResult:
    """
    Classify the onboarding risk of a form.

    Args:
        state: Current form state (read only)

    Returns:
        RiskResult with the high-risk flag and all six indicators
    """
    indicators = [
        RiskIndicator(key=key, label=INDICATOR_LABELS[key], triggered=bool(triggered))
        for key, triggered in _evaluate_indicators(state).items()
    ]
    is_high_risk = any(i.triggered for i in indicators)

    if is_high_risk:
        keys = ", ".join(i.key for i in indicators if i.triggered)
        logger.info(f"[Risk] High risk client: {keys}")

    return RiskResult(is_high_risk=is_high_risk, indicators=indicators)


# ============================================================================
# DISPLAY HELPERS
# ============================================================================

def map_risk_level(state: FormState) -> RiskLevel:
    """
    Risk label for the customer profile.
    Foreign/international PEPs and sanctioned-country ties are high risk,
    domestic PEPs and PEP relationships medium.
    """
    sanctions = state.sanctions_info
    if sanctions.sanctioned_countries:
        return RiskLevel.HIGH
    if sanctions.is_pep and sanctions.pep_type != PepType.DOMESTIC:
        return RiskLevel.HIGH
    if sanctions.is_pep or sanctions.has_pep_relationship:
        return RiskLevel.MEDIUM
    return RiskLevel.STANDARD


def describe_financial_profile(annual_revenue: str, total_assets: str) -> Optional[str]:
    """Short assessment of the selected revenue/asset ranges."""
    if not annual_revenue or not total_assets:
        return None
    if annual_revenue == "<50k" and total_assets == "<100k":
        return "Small business profile - suitable for basic financial services."
    if annual_revenue == ">100m" or total_assets == ">200m":
        return "Large enterprise profile - may require enhanced due diligence."
    if "m" in annual_revenue or "m" in total_assets:
        return "Medium to large business profile - standard due diligence applies."
    return "Standard business profile - normal onboarding process applies."


def describe_transaction_volume(volume: Union[int, float, None]) -> Optional[str]:
    """Monitoring level implied by the expected monthly volume (CHF)."""
    if volume is None:
        return None
    if volume < 10_000:
        return "Low volume - standard monitoring applies."
    if volume < 100_000:
        return "Medium volume - enhanced monitoring may be required."
    if volume < 1_000_000:
        return "High volume - enhanced due diligence required."
    return "Very high volume - comprehensive due diligence and monitoring required."
