import pytest

from clinassist.schemas.requests import ChatTurn, ClinicalScenario, DrugList, RequestKind, SymptomSet
from clinassist.services.prompt_compiler import (
    OUTPUT_SECTIONS,
    SYSTEM_PROMPT,
    compile_article_summary,
    compile_prompt,
)


def _history(n):
    out = []
    for i in range(n):
        role = "user" if i % 2 == 0 else "assistant"
        out.append({"role": role, "content": f"turn {i}"})
    return out


def test_compile_is_deterministic():
    request = DrugList(medications=["warfarin", "aspirin"], patient_age=70)

    first = compile_prompt(request)
    second = compile_prompt(request)

    assert first == second
    assert first.kind == RequestKind.DRUG_INTERACTION
    assert first.temperature == 0.2
    assert first.max_output_tokens == 2000
    assert first.safety_threshold == "BLOCK_ONLY_HIGH"


def test_system_prompt_comes_first():
    prompt = compile_prompt(ChatTurn(message="What is a normal resting heart rate?"))

    assert prompt.text.startswith(SYSTEM_PROMPT)
    assert "CLINICIAN QUESTION:\nWhat is a normal resting heart rate?" in prompt.text
    assert (prompt.temperature, prompt.max_output_tokens) == (0.3, 800)


def test_history_window_keeps_most_recent_turns_oldest_first():
    prompt = compile_prompt(ChatTurn(message="And now?"), _history(10), history_window=4)

    assert "CONVERSATION HISTORY (oldest first):" in prompt.text
    for i in range(6):
        assert f"turn {i}\n" not in prompt.text
    positions = [prompt.text.index(f"turn {i}") for i in range(6, 10)]
    assert positions == sorted(positions)
    assert "USER: turn 6" in prompt.text
    assert "ASSISTANT: turn 7" in prompt.text


def test_zero_window_drops_history():
    prompt = compile_prompt(ChatTurn(message="Hello there"), _history(3), history_window=0)
    assert "CONVERSATION HISTORY" not in prompt.text


def test_empty_fields_are_omitted():
    request = SymptomSet(symptoms="Fever and productive cough for three days", patient_age=34, allergies="  ")

    text = compile_prompt(request).text

    assert "- Age: 34 years" in text
    assert "Allergies" not in text
    assert "Gender" not in text
    assert "Laboratory Results" not in text


@pytest.mark.parametrize(
    "request_obj",
    [
        ChatTurn(message="Is ibuprofen safe with lisinopril?"),
        DrugList(medications=["metformin", "lisinopril"]),
        SymptomSet(symptoms="Sudden onset headache with neck stiffness"),
        ClinicalScenario(clinical_scenario="Newly diagnosed type 2 diabetes, HbA1c 8.1%"),
    ],
)
def test_every_output_header_is_requested(request_obj):
    text = compile_prompt(request_obj).text

    for section in OUTPUT_SECTIONS[request_obj.kind]:
        if section.toggle and not getattr(request_obj, section.toggle):
            continue
        assert f"- {section.header}" in text


def test_toggles_control_optional_sections():
    base = "Elderly patient with atrial fibrillation considering anticoagulation"

    default = compile_prompt(ClinicalScenario(clinical_scenario=base)).text
    assert "- COST CONSIDERATIONS" not in default
    assert "- MONITORING PLAN" in default

    custom = compile_prompt(
        ClinicalScenario(
            clinical_scenario=base,
            include_cost_considerations=True,
            include_monitoring_plan=False,
            include_alternatives=False,
        )
    ).text
    assert "- COST CONSIDERATIONS" in custom
    assert "- MONITORING PLAN" not in custom
    assert "- ALTERNATIVE OPTIONS" not in custom
    assert "Include cost-effectiveness considerations" in custom


def test_specialty_focus_is_added():
    text = compile_prompt(ChatTurn(message="Chest discomfort on stairs", specialty="cardiology")).text
    assert "SPECIALTY FOCUS (CARDIOLOGY)" in text
    assert "CHA2DS2-VASc" in text

    plain = compile_prompt(ChatTurn(message="Chest discomfort on stairs", specialty="astrology")).text
    assert "SPECIALTY FOCUS" not in plain


def test_medications_are_numbered():
    text = compile_prompt(DrugList(medications=["warfarin", "aspirin", "omeprazole"])).text
    assert "MEDICATIONS TO ANALYZE:\n1. warfarin\n2. aspirin\n3. omeprazole" in text


def test_article_summary_prompt():
    prompt = compile_article_summary("  Statins in the elderly ", "Background text.")

    assert prompt.text == (
        "Summarize this medical article in 2-3 sentences for healthcare professionals:\n\n"
        "Title: Statins in the elderly\n\n"
        "Abstract: Background text.\n\n"
        "Summary:"
    )
    assert (prompt.temperature, prompt.max_output_tokens) == (0.5, 200)
