"""Built-in reference tables used when no catalog file is configured."""

from __future__ import annotations

from datetime import date

from .catalog import (
    AgeRestriction,
    CompletenessElement,
    EnrollmentPolicy,
    FilingLimitRule,
    FrequencyHorizon,
    FrequencyRule,
    GenderRestriction,
    ModifierRule,
    NecessityKind,
    NecessityRule,
    PayerRule,
    RuleCatalog,
)
from .claim import PayerType

DEFAULT_CATALOG_VERSION = "2025.1"

NPI_PATTERN = r"\d{10}"
# Medicare Beneficiary Identifier (excludes S, L, O, I, B, Z)
MBI_PATTERN = (
    r"[1-9][AC-HJKMNP-RT-Y][AC-HJKMNP-RT-Y0-9]\d"
    r"[AC-HJKMNP-RT-Y][AC-HJKMNP-RT-Y0-9]\d"
    r"[AC-HJKMNP-RT-Y]{2}\d{2}"
)
PLACE_OF_SERVICE_PATTERN = r"\d{2}"
ICD10_PATTERN = r"[A-TV-Z][0-9][0-9A-Z](\.?[0-9A-Z]{1,4})?"


def _necessity_rules() -> tuple[NecessityRule, ...]:
    return (
        NecessityRule(
            rule_id="SCREENING_MAMMOGRAPHY_DX",
            kind=NecessityKind.REQUIRED,
            procedure_codes=frozenset({"77067"}),
            diagnosis_patterns=(r"Z12\.3", r"Z80\.3"),
            requirement="Screening mammography requires a screening or family-history diagnosis",
        ),
        NecessityRule(
            rule_id="COLORECTAL_SCREENING_DX",
            kind=NecessityKind.REQUIRED,
            procedure_codes=frozenset({"82270"}),
            diagnosis_patterns=(r"Z12\.1", r"Z80\.0"),
            requirement="Fecal occult blood screening requires a colorectal screening diagnosis",
        ),
        NecessityRule(
            rule_id="ONCOLOGY_TREATMENT_PLAN",
            kind=NecessityKind.EXCLUDED,
            procedure_codes=frozenset({"96413", "96415", "77301", "77338"}),
            diagnosis_patterns=(r"Z51\.(0|1)",),
            requirement="Oncology treatment plan required",
        ),
        NecessityRule(
            rule_id="SOFT_TISSUE_CONSERVATIVE_CARE",
            kind=NecessityKind.EXCLUDED,
            procedure_codes=frozenset({"20610", "20611", "76942"}),
            diagnosis_patterns=(r"M79\.[0-9]",),
            requirement="Conservative treatment documentation required",
            severity="medium",
        ),
        NecessityRule(
            rule_id="FEMUR_FRACTURE_SURGERY",
            kind=NecessityKind.EXCLUDED,
            procedure_codes=frozenset({"27245", "27246", "27248"}),
            diagnosis_patterns=(r"S72\.[0-9]",),
            requirement="Surgical necessity documentation required",
        ),
        NecessityRule(
            rule_id="ANOXIC_BRAIN_CRITICAL_CARE",
            kind=NecessityKind.EXCLUDED,
            procedure_codes=frozenset({"99291", "99292"}),
            diagnosis_patterns=(r"G93\.1",),
            requirement="Critical care documentation required",
        ),
        NecessityRule(
            rule_id="ISCHEMIC_HEART_CATHETERIZATION",
            kind=NecessityKind.EXCLUDED,
            procedure_codes=frozenset({"93458", "93459", "93460"}),
            diagnosis_patterns=(r"I25\.[0-9]",),
            requirement="Cardiac catheterization medical necessity",
        ),
    )


def _frequency_rules() -> tuple[FrequencyRule, ...]:
    annual = FrequencyHorizon.ANNUAL
    daily = FrequencyHorizon.DAILY
    lifetime = FrequencyHorizon.LIFETIME
    banded = FrequencyHorizon.AGE_BANDED
    return (
        FrequencyRule("99213", 12, annual, description="Office visits limited to 12 per year for routine care"),
        FrequencyRule("76700", 2, annual, description="Abdominal ultrasound limited to 2 per year"),
        FrequencyRule("77067", 1, annual, description="Annual mammography screening"),
        FrequencyRule("82270", 1, annual, description="Annual fecal occult blood test"),
        FrequencyRule("90834", 1, daily, description="Psychotherapy limited to 1 session per day"),
        FrequencyRule("97110", 4, daily, description="Physical therapy units limited to 4 per day"),
        FrequencyRule("99291", 1, daily, description="Critical care limited to 1 session per day"),
        FrequencyRule("27447", 2, lifetime, description="Total knee replacement limited to 2 per lifetime"),
        FrequencyRule("27130", 2, lifetime, description="Total hip replacement limited to 2 per lifetime"),
        FrequencyRule("77067", 1, banded, min_age=40, max_age=49, description="Mammography frequency, ages 40-49"),
        FrequencyRule("77067", 2, banded, min_age=50, max_age=74, description="Mammography frequency, ages 50-74"),
        FrequencyRule("77067", 1, banded, min_age=75, description="Mammography frequency, ages 75+"),
        FrequencyRule("82270", 1, banded, min_age=50, max_age=75, description="Colorectal screening frequency"),
    )


def _payer_rules() -> tuple[PayerRule, ...]:
    return (
        PayerRule(
            payer_type=PayerType.MEDICARE,
            required_fields=(
                "patient_medicare_number",
                "provider_npi",
                "place_of_service",
                "diagnosis_codes",
            ),
            field_formats={
                "patient_medicare_number": MBI_PATTERN,
                "provider_npi": NPI_PATTERN,
                "place_of_service": PLACE_OF_SERVICE_PATTERN,
                "diagnosis_codes": ICD10_PATTERN,
            },
            prohibited_modifiers=(
                ModifierRule("99213", "59", "Inappropriate modifier use"),
            ),
        ),
        PayerRule(
            payer_type=PayerType.MEDICAID,
            required_fields=(
                "patient_medicaid_number",
                "provider_medicaid_id",
                "prior_authorization_number",
            ),
            field_formats={"provider_npi": NPI_PATTERN},
        ),
        PayerRule(
            payer_type=PayerType.COMMERCIAL,
            required_fields=(
                "patient_member_id",
                "group_number",
                "authorization_number",
            ),
            field_formats={"provider_npi": NPI_PATTERN},
        ),
    )


def default_catalog() -> RuleCatalog:
    """The built-in rule catalog."""
    return RuleCatalog(
        version=DEFAULT_CATALOG_VERSION,
        effective_date=date(2025, 1, 1),
        necessity_rules=_necessity_rules(),
        age_restrictions=(
            AgeRestriction("99401", 18, 64, "Adult preventive care guidelines"),
            AgeRestriction("90715", 7, None, "Age-appropriate vaccination"),
            AgeRestriction("77067", 40, None, "Age-appropriate screening"),
            AgeRestriction("82270", 50, 75, "Colorectal cancer screening guidelines"),
        ),
        gender_restrictions=(
            GenderRestriction(frozenset({"57454", "58150", "58180"}), "F", "Female-specific procedure"),
            GenderRestriction(frozenset({"54150", "54160", "54161"}), "M", "Male-specific procedure"),
            GenderRestriction(frozenset({"77067", "77063"}), "F", "Female breast imaging"),
        ),
        prior_auth_required=frozenset(
            {
                "27447",  # Total knee arthroplasty
                "27130",  # Total hip arthroplasty
                "63047",  # Laminectomy
                "64483",  # Epidural injection
                "93458",  # Cardiac catheterization
                "70553",  # MRI brain with contrast
                "72148",  # MRI lumbar spine
                "73721",  # MRI knee
            }
        ),
        filing_limits=(
            FilingLimitRule(
                PayerType.MEDICARE,
                365,
                "Medicare claims must be filed within 1 year of service date",
                ("Good cause delay", "Administrative necessity", "Retroactive eligibility"),
            ),
            FilingLimitRule(
                PayerType.MEDICAID,
                365,
                "Medicaid claims must be filed within 1 year of service date",
                ("Retroactive eligibility", "Third party liability", "Administrative delay"),
            ),
            FilingLimitRule(
                PayerType.COMMERCIAL,
                180,
                "Commercial claims typically must be filed within 180 days",
                ("Contract-specific terms", "Coordination of benefits delay"),
            ),
            FilingLimitRule(
                PayerType.TRICARE,
                365,
                "TRICARE claims must be filed within 1 year of service date",
                ("Good cause delay", "Government processing delay"),
            ),
            FilingLimitRule(
                PayerType.WORKERS_COMP,
                90,
                "Workers Comp claims must be filed within 90 days",
                ("Late discovery of work-related injury", "Employer notification delay"),
            ),
        ),
        frequency_rules=_frequency_rules(),
        enrollment_policies=(
            EnrollmentPolicy("active", True, "Provider is actively enrolled and can bill"),
            EnrollmentPolicy("pending", False, "Enrollment application is pending review", on_hold=True),
            EnrollmentPolicy("suspended", False, "Provider enrollment is temporarily suspended"),
            EnrollmentPolicy("terminated", False, "Provider enrollment has been terminated"),
            EnrollmentPolicy("deactivated", False, "Provider has voluntarily deactivated enrollment"),
        ),
        payer_rules=_payer_rules(),
        completeness_elements=(
            CompletenessElement("rendering_provider_npi", "Rendering Provider"),
            CompletenessElement("referring_provider_npi", "Referring Provider"),
            CompletenessElement("place_of_service", "Place of Service"),
            CompletenessElement("diagnosis_pointers", "Diagnosis Pointers"),
            CompletenessElement("diagnosis_codes", "Diagnosis Codes"),
            CompletenessElement("line_charges", "Charge Information"),
            CompletenessElement("total_charge", "Total Charge"),
            CompletenessElement("taxonomy_code", "Provider Taxonomy"),
            CompletenessElement("facility_npi", "Facility Information"),
            CompletenessElement("patient_address", "Patient Address"),
        ),
    )
