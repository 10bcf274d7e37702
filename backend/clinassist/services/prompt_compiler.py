from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from clinassist.core.config import settings
from clinassist.core.medical_knowledge import get_specialty_prompt
from clinassist.schemas.requests import (
    ChatTurn,
    ClinicalRequest,
    ClinicalScenario,
    DrugList,
    RequestKind,
    SymptomSet,
)


SYSTEM_PROMPT = """
You are a clinical decision support assistant for licensed healthcare professionals.
You are NOT a replacement for clinical judgment.

Rules:
- Base every statement on current evidence and recognised guidelines
- State uncertainty explicitly and never claim certainty
- Consider contraindications, interactions and patient-specific factors
- If emergency symptoms are described, recommend urgent medical evaluation first
- For medication questions, recommend verification with a clinical pharmacist
- Use the exact section headers requested below, each on its own line
""".strip()

DEFAULT_SAFETY_THRESHOLD = "BLOCK_ONLY_HIGH"


@dataclass(frozen=True)
class CompiledPrompt:
    text: str
    kind: RequestKind
    temperature: float
    max_output_tokens: int
    safety_threshold: str = DEFAULT_SAFETY_THRESHOLD


@dataclass(frozen=True)
class OutputSection:
    """
    One header of the output contract. `target` names the
    ExtractionResult field the extractor fills from this section.
    """

    header: str
    target: str
    instruction: str = ""
    toggle: Optional[str] = None


# ------------------------------------------------------------------
# Output contracts (shared with the response extractor)
# ------------------------------------------------------------------

OUTPUT_SECTIONS: dict[RequestKind, tuple[OutputSection, ...]] = {
    RequestKind.CHAT: (
        OutputSection("ASSESSMENT", "assessment", "what this could mean, in general terms"),
        OutputSection("SAFE NEXT STEPS", "next_steps", "bulleted, practical and safe"),
        OutputSection("RED FLAGS", "red_flags", "bulleted signs that need urgent care"),
        OutputSection("FOLLOW-UP QUESTIONS", "suggested_questions", "up to 3 questions, one per line"),
    ),
    RequestKind.DRUG_INTERACTION: (
        OutputSection(
            "MAJOR INTERACTIONS",
            "major_interactions",
            "contraindicated or requiring dose modification; one per line as 'Drug A + Drug B: effect'",
        ),
        OutputSection(
            "MODERATE INTERACTIONS",
            "moderate_interactions",
            "requiring monitoring; one per line as 'Drug A + Drug B: effect'",
        ),
        OutputSection(
            "MINOR INTERACTIONS",
            "minor_interactions",
            "clinically insignificant; one per line as 'Drug A + Drug B: effect'",
        ),
        OutputSection("FOOD-DRUG INTERACTIONS", "food_interactions", "one per line as 'Drug + Food: effect'"),
        OutputSection("MONITORING RECOMMENDATIONS", "monitoring", "bulleted"),
        OutputSection("ALTERNATIVE MEDICATIONS", "alternatives", "bulleted"),
        OutputSection("OVERALL RISK ASSESSMENT", "assessment", "short paragraph"),
        OutputSection("CLINICAL RECOMMENDATIONS", "clinical_recommendations", "bulleted"),
    ),
    RequestKind.DIFFERENTIAL_DIAGNOSIS: (
        OutputSection(
            "DIFFERENTIAL DIAGNOSES",
            "diagnoses",
            "ranked by likelihood; numbered as 'Diagnosis - HIGH|MEDIUM|LOW: supporting features'",
        ),
        OutputSection("CLINICAL REASONING", "clinical_reasoning", "for each diagnosis"),
        OutputSection("SUPPORTING FEATURES", "clinical_reasoning"),
        OutputSection("DISTINGUISHING FEATURES", "clinical_reasoning"),
        OutputSection("RECOMMENDED DIAGNOSTIC TESTS", "recommended_tests", "bulleted"),
        OutputSection("RED FLAGS AND SAFETY CONCERNS", "red_flags", "bulleted"),
        OutputSection("URGENCY ASSESSMENT", "assessment"),
        OutputSection("SPECIALIST REFERRAL RECOMMENDATIONS", "referrals", "bulleted"),
        OutputSection("FOLLOW-UP PLAN", "follow_up", "bulleted"),
    ),
    RequestKind.CLINICAL_DECISION: (
        OutputSection(
            "PRIMARY RECOMMENDATION",
            "primary_recommendation",
            "one line with rationale, ending with 'Evidence: HIGH|MODERATE|LOW|EXPERT_OPINION'",
        ),
        OutputSection(
            "ALTERNATIVE OPTIONS",
            "recommendations",
            "ranked by preference, one per line, each ending with its evidence level",
            toggle="include_alternatives",
        ),
        OutputSection("EVIDENCE SUMMARY", "evidence_summary", "with sources"),
        OutputSection("RISK-BENEFIT ANALYSIS", "risk_benefit", toggle="include_risk_assessment"),
        OutputSection("CONTRAINDICATIONS AND PRECAUTIONS", "contraindications", "bulleted"),
        OutputSection("MONITORING PLAN", "monitoring", "bulleted", toggle="include_monitoring_plan"),
        OutputSection("IMPLEMENTATION GUIDANCE", "implementation", "bulleted"),
        OutputSection("COST CONSIDERATIONS", "implementation", "bulleted", toggle="include_cost_considerations"),
        OutputSection("FOLLOW-UP RECOMMENDATIONS", "follow_up", "bulleted"),
        OutputSection("PATIENT EDUCATION POINTS", "patient_education", "bulleted"),
    ),
    RequestKind.ARTICLE_SUMMARY: (),
}


GENERATION_PARAMS: dict[RequestKind, tuple[float, int]] = {
    RequestKind.CHAT: (0.3, 800),
    RequestKind.DRUG_INTERACTION: (0.2, 2000),
    RequestKind.DIFFERENTIAL_DIAGNOSIS: (0.3, 2000),
    RequestKind.CLINICAL_DECISION: (0.3, 2000),
    RequestKind.ARTICLE_SUMMARY: (0.5, 200),
}


# ------------------------------------------------------------------
# Building blocks
# ------------------------------------------------------------------

def _preamble(request: ClinicalRequest) -> list[str]:
    blocks = [SYSTEM_PROMPT]
    focus = get_specialty_prompt(request.specialty)
    if focus:
        blocks.append(f"SPECIALTY FOCUS ({request.specialty.upper()}):\n{focus}")
    return blocks


def _history_excerpt(history: Sequence[dict] | None, window: int) -> Optional[str]:
    if not history or window <= 0:
        return None

    lines = []
    for m in list(history)[-window:]:
        role = (m.get("role") or "").strip().upper()
        content = (m.get("content") or "").strip()
        if not role or not content:
            continue
        lines.append(f"{role}: {content}")

    if not lines:
        return None
    return "CONVERSATION HISTORY (oldest first):\n" + "\n".join(lines)


def _field_lines(fields: Sequence[tuple[str, object]]) -> list[str]:
    out = []
    for label, value in fields:
        if value is None or value == "" or value == ():
            continue
        if isinstance(value, tuple):
            value = ", ".join(value)
        out.append(f"- {label}: {value}")
    return out


def _demographics(request: ClinicalRequest) -> list[tuple[str, object]]:
    return [
        ("Age", f"{request.patient_age} years" if request.patient_age is not None else None),
        ("Gender", request.patient_gender),
        ("Weight", f"{request.patient_weight:g} kg" if request.patient_weight is not None else None),
    ]


def _numbered(title: str, items: Sequence[str]) -> str:
    return title + "\n" + "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))


def _output_contract(kind: RequestKind, request: ClinicalRequest | None = None) -> str:
    lines = ["RESPONSE FORMAT:", "Use exactly these section headers, in this order:"]
    for section in OUTPUT_SECTIONS[kind]:
        if section.toggle and request is not None and not getattr(request, section.toggle, False):
            continue
        line = f"- {section.header}"
        if section.instruction:
            line += f" ({section.instruction})"
        lines.append(line)
    lines.append(
        "Put each header on its own line, leave a blank line between sections "
        "and write 'None identified' for an empty section."
    )
    return "\n".join(lines)


def _assemble(request: ClinicalRequest, history, window: int, body: list[str]) -> CompiledPrompt:
    blocks = _preamble(request)
    excerpt = _history_excerpt(history, window)
    if excerpt:
        blocks.append(excerpt)
    blocks.extend(b for b in body if b)
    blocks.append(_output_contract(request.kind, request))

    temperature, max_tokens = GENERATION_PARAMS[request.kind]
    return CompiledPrompt(
        text="\n\n".join(blocks),
        kind=request.kind,
        temperature=temperature,
        max_output_tokens=max_tokens,
    )


# ------------------------------------------------------------------
# Per-request compilers
# ------------------------------------------------------------------

def _compile_chat(request: ChatTurn, history, window: int) -> CompiledPrompt:
    body = []
    if request.medical_context:
        body.append(f"CLINICAL CONTEXT:\n{request.medical_context}")
    patient = _field_lines(_demographics(request))
    if patient:
        body.append("PATIENT INFORMATION:\n" + "\n".join(patient))
    body.append(f"CLINICIAN QUESTION:\n{request.message}")
    return _assemble(request, history, window, body)


def _compile_drug_list(request: DrugList, history, window: int) -> CompiledPrompt:
    patient = _field_lines(
        _demographics(request)
        + [
            ("Medical Conditions", request.patient_conditions),
            ("Allergies", request.allergies),
            ("Kidney Function", request.kidney_function),
            ("Liver Function", request.liver_function),
            ("Current Symptoms", request.current_symptoms),
            ("Urgency", request.urgency),
            ("Additional Notes", request.additional_notes),
        ]
    )
    body = [
        "COMPREHENSIVE DRUG INTERACTION ANALYSIS",
        _numbered("MEDICATIONS TO ANALYZE:", request.medications),
        "PATIENT INFORMATION:\n" + "\n".join(patient) if patient else "",
        _numbered(
            "ANALYSIS REQUIREMENTS:",
            [
                "Identify all potential drug-drug interactions",
                "Classify interactions by severity (MAJOR, MODERATE, MINOR)",
                "Explain the mechanism of each interaction",
                "Assess clinical significance",
                "Provide management recommendations",
                "Consider patient-specific factors",
                "Identify any food-drug interactions",
                "Suggest monitoring parameters",
                "Recommend alternative medications if needed",
                "Assess overall risk level",
            ],
        ),
    ]
    return _assemble(request, history, window, body)


def _compile_symptom_set(request: SymptomSet, history, window: int) -> CompiledPrompt:
    patient = _field_lines(
        _demographics(request)
        + [
            ("Patient Data", request.patient_data),
            ("Medical History", request.medical_history),
            ("Current Medications", request.current_medications),
            ("Allergies", request.allergies),
            ("Family History", request.family_history),
            ("Social History", request.social_history),
        ]
    )
    clinical = _field_lines(
        [
            ("Onset", request.onset_type),
            ("Duration", request.symptom_duration),
            ("Vital Signs", request.vital_signs),
            ("Physical Examination", request.physical_exam_findings),
            ("Laboratory Results", request.lab_results),
            ("Urgency", request.urgency),
            ("Additional Notes", request.additional_notes),
        ]
    )
    body = [
        "DIFFERENTIAL DIAGNOSIS ANALYSIS",
        f"PRESENTING SYMPTOMS:\n{request.symptoms}",
        "PATIENT INFORMATION:\n" + "\n".join(patient) if patient else "",
        "CLINICAL FINDINGS:\n" + "\n".join(clinical) if clinical else "",
        _numbered(
            "ANALYSIS REQUIREMENTS:",
            [
                "Generate a comprehensive differential diagnosis list",
                "Rank diagnoses by likelihood (HIGH, MEDIUM, LOW)",
                "Provide clinical reasoning for each diagnosis",
                "Identify supporting and distinguishing features",
                "Recommend appropriate diagnostic tests",
                "Identify red flags and safety concerns",
                "Assess urgency level",
                "Consider age and gender-specific factors",
                "Include specialty-specific considerations",
                "Provide follow-up recommendations",
            ],
        ),
        f"Analysis Depth: {request.analysis_depth or 'STANDARD'}",
    ]
    return _assemble(request, history, window, body)


def _compile_scenario(request: ClinicalScenario, history, window: int) -> CompiledPrompt:
    patient = _field_lines(
        _demographics(request)
        + [
            ("Patient Data", request.patient_data),
            ("Medical History", request.medical_history),
            ("Current Medications", request.current_medications),
            ("Allergies", request.allergies),
            ("Comorbidities", request.comorbidities),
            ("Contraindications", request.contraindications),
            ("Previous Treatments", request.previous_treatments),
        ]
    )
    context = _field_lines(
        [
            ("Decision Type", request.decision_type),
            ("Clinical Setting", request.clinical_setting),
            ("Urgency", request.urgency),
            ("Minimum Evidence Level", request.evidence_level),
            ("Available Diagnostic Tests", request.available_diagnostic_tests),
            ("Treatment Options Under Consideration", request.treatment_options),
            ("Treatment Goals", request.treatment_goals),
            ("Patient Preferences", request.patient_preferences),
            ("Specific Questions", request.specific_questions),
            ("Additional Notes", request.additional_notes),
        ]
    )

    requested = []
    if request.include_alternatives:
        requested.append("- Include alternative treatment/management options")
    if request.include_cost_considerations:
        requested.append("- Include cost-effectiveness considerations")
    if request.include_risk_assessment:
        requested.append("- Include a detailed risk assessment")
    if request.include_monitoring_plan:
        requested.append("- Include a monitoring plan")

    requirements = _numbered(
        "ANALYSIS REQUIREMENTS:",
        [
            "Provide evidence-based recommendations",
            "Include risk-benefit analysis",
            "Consider patient-specific factors",
            "Identify contraindications and precautions",
            "Recommend monitoring parameters",
            "Suggest alternative approaches",
            "Provide implementation guidance",
            "Include follow-up recommendations",
            "Consider cost-effectiveness when requested",
            "Reference clinical guidelines",
        ],
    )
    if requested:
        requirements += "\n" + "\n".join(requested)

    body = [
        "CLINICAL DECISION SUPPORT ANALYSIS",
        f"CLINICAL SCENARIO:\n{request.clinical_scenario}",
        "PATIENT INFORMATION:\n" + "\n".join(patient) if patient else "",
        "DECISION CONTEXT:\n" + "\n".join(context) if context else "",
        requirements,
        f"Analysis Depth: {request.analysis_depth or 'STANDARD'}",
    ]
    return _assemble(request, history, window, body)


COMPILERS: dict[type, Callable[..., CompiledPrompt]] = {
    ChatTurn: _compile_chat,
    DrugList: _compile_drug_list,
    SymptomSet: _compile_symptom_set,
    ClinicalScenario: _compile_scenario,
}


def compile_prompt(
    request: ClinicalRequest,
    history: Sequence[dict] | None = None,
    *,
    history_window: int | None = None,
) -> CompiledPrompt:
    """
    Render a request (plus optional prior turns) into the exact text sent
    to a provider. Pure: identical inputs give identical prompts.
    """
    compiler = COMPILERS.get(type(request))
    if compiler is None:
        raise TypeError(f"No prompt compiler for {type(request).__name__}")

    window = settings.HISTORY_WINDOW if history_window is None else history_window
    return compiler(request, history, window)


def compile_article_summary(title: str, abstract: str) -> CompiledPrompt:
    temperature, max_tokens = GENERATION_PARAMS[RequestKind.ARTICLE_SUMMARY]
    text = (
        "Summarize this medical article in 2-3 sentences for healthcare professionals:\n\n"
        f"Title: {(title or '').strip()}\n\n"
        f"Abstract: {(abstract or '').strip()}\n\n"
        "Summary:"
    )
    return CompiledPrompt(
        text=text,
        kind=RequestKind.ARTICLE_SUMMARY,
        temperature=temperature,
        max_output_tokens=max_tokens,
    )
