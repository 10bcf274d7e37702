import pytest
from pydantic import ValidationError

from clinassist.schemas.requests import (
    ChatTurn,
    ClinicalScenario,
    DrugList,
    SymptomSet,
    clean_string_list,
)
from clinassist.utils.conversation_title import generate_conversation_title


def test_clean_string_list_dedupes_case_insensitively():
    assert clean_string_list([" Warfarin ", "warfarin", "", "Aspirin", None]) == ("Warfarin", "Aspirin")
    assert clean_string_list(["  ", ""]) is None
    assert clean_string_list(None) is None


def test_drug_list_needs_two_distinct_medications():
    with pytest.raises(ValidationError):
        DrugList(medications=["warfarin", "WARFARIN "])

    with pytest.raises(ValidationError):
        DrugList(medications=[f"drug{i}" for i in range(11)])

    with pytest.raises(ValidationError):
        DrugList(medications=["a" * 201, "aspirin"])

    request = DrugList(medications=["Warfarin", "aspirin", "warfarin"])
    assert request.medications == ("Warfarin", "aspirin")


@pytest.mark.parametrize("value", [5, {"drug": "warfarin"}, 3.5])
def test_non_list_medications_are_rejected(value):
    with pytest.raises(ValidationError):
        DrugList(medications=value)

    with pytest.raises(ValueError):
        clean_string_list(value, field="medications")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"patient_age": -1},
        {"patient_age": 151},
        {"patient_weight": 0},
        {"patient_weight": 501},
        {"patient_gender": "unknown"},
    ],
)
def test_demographic_bounds(kwargs):
    with pytest.raises(ValidationError):
        ChatTurn(message="hello", **kwargs)


def test_text_bounds():
    with pytest.raises(ValidationError):
        ChatTurn(message="")
    with pytest.raises(ValidationError):
        ChatTurn(message="x" * 2001)
    with pytest.raises(ValidationError):
        SymptomSet(symptoms="too short")
    with pytest.raises(ValidationError):
        ClinicalScenario(clinical_scenario="short scenario")


def test_codes_are_normalised():
    request = SymptomSet(
        symptoms="Progressive shortness of exertion over months",
        patient_gender="female",
        urgency=" high ",
        onset_type="chronic",
        allergies="   ",
    )

    assert request.patient_gender == "FEMALE"
    assert request.urgency == "HIGH"
    assert request.onset_type == "CHRONIC"
    assert request.allergies is None
    assert request.is_emergency_case()


def test_requests_are_immutable():
    request = ChatTurn(message="hello")
    with pytest.raises(ValidationError):
        request.message = "changed"


def test_age_groups():
    assert ChatTurn(message="x", patient_age=10).is_pediatric()
    assert not ChatTurn(message="x", patient_age=18).is_pediatric()
    assert ChatTurn(message="x", patient_age=65).is_geriatric()
    assert not ChatTurn(message="x").is_geriatric()


def test_drug_complexity_and_high_risk():
    request = DrugList(
        medications=["a", "b", "c", "d", "e", "f"],
        patient_conditions="CKD stage 3",
        kidney_function="eGFR 40",
        patient_age=80,
        urgency="HIGH",
    )

    assert request.complexity_score() == 8
    assert request.is_high_risk_check()


def test_symptom_complexity():
    request = SymptomSet(
        symptoms="Chest tightness on exertion",
        medical_history="Hypertension",
        lab_results=["Troponin normal"],
        patient_age=70,
        urgency="HIGH",
    )
    assert request.complexity_score() == 5


def test_scenario_complexity_is_capped():
    request = ClinicalScenario(
        clinical_scenario="Complex ICU patient with multi-organ failure requiring a treatment decision",
        comorbidities=["CKD", "COPD", "Diabetes", "Heart failure", "Cirrhosis"],
        contraindications=["Anticoagulation", "NSAIDs"],
        urgency="EMERGENCY",
        decision_type="treatment",
        patient_age=85,
    )
    assert request.complexity_score() == 10


def test_conversation_title():
    assert generate_conversation_title("  What   is a normal\nBP? ") == "What is a normal BP?"
    long = "word " * 30
    title = generate_conversation_title(long)
    assert len(title) == 50
    assert title.endswith("...")
    assert generate_conversation_title("") == "Medical conversation"
