import uuid

from clinassist.core.exceptions import ProviderUnavailable


DRUG_REPLY = (
    "MAJOR INTERACTIONS\n"
    "- Warfarin + Aspirin: bleeding risk\n\n"
    "MONITORING RECOMMENDATIONS\n"
    "- INR twice weekly\n"
)


def test_root_and_status(client):
    assert client.get("/").json() == {"status": "ok"}
    assert client.get("/api/v1/status").json()["status"] == "OK"


def test_chat_emergency(client, make_service, service_override, user_headers):
    service = make_service()
    service_override(service)

    response = client.post("/api/v1/chat", json={"message": "I have severe chest pain"}, headers=user_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["emergency_detected"] is True
    assert body["status"] == "EMERGENCY"
    assert body["risk_level"] == "CRITICAL"
    assert "emergency" in body["reply"].lower()
    assert service.router.primary.calls == []


def test_chat_conversation_flow(client, make_service, service_override):
    headers = {"X-User-Id": f"clinician-{uuid.uuid4().hex[:8]}"}
    reply = (
        "ASSESSMENT\nLikely allergic rhinitis.\n\n"
        "RED FLAGS\n- Wheezing\n\n"
        "FOLLOW-UP QUESTIONS\n1. Is it seasonal?\n"
    )
    service_override(make_service(primary_replies=[reply]))

    first = client.post("/api/v1/chat", json={"message": "Sneezing every morning"}, headers=headers).json()
    assert first["red_flags"] == ["Wheezing"]
    assert first["suggested_questions"] == ["Is it seasonal?"]
    assert first["provenance"]["provider"] == "gemini"

    client.post(
        "/api/v1/chat",
        json={"message": "It started in spring", "conversation_id": first["conversation_id"]},
        headers=headers,
    )

    conversations = client.get("/api/v1/conversations", headers=headers).json()
    assert conversations == [
        {"id": first["conversation_id"], "title": "Sneezing every morning", "message_count": 4}
    ]

    messages = client.get(f"/api/v1/conversations/{first['conversation_id']}/messages", headers=headers).json()
    assert [m["role"] for m in messages] == ["user", "assistant", "user", "assistant"]

    other = client.get(
        f"/api/v1/conversations/{first['conversation_id']}/messages",
        headers={"X-User-Id": "someone-else"},
    )
    assert other.status_code == 404


def test_chat_message_too_long_is_422(client, make_service, service_override, user_headers):
    service_override(make_service())

    response = client.post("/api/v1/chat", json={"message": "x" * 2001}, headers=user_headers)

    assert response.status_code == 422


def test_drug_interactions_endpoint(client, make_service, service_override, user_headers):
    service_override(make_service(primary_replies=[DRUG_REPLY]))

    response = client.post(
        "/api/v1/medical/drug-interactions",
        json={"medications": ["Warfarin", "Aspirin"], "patient_age": 72},
        headers=user_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["analysis_id"] > 0
    result = body["result"]
    assert result["status"] == "COMPLETED"
    assert result["risk"]["risk_level"] == "CRITICAL"
    assert result["extraction"]["major_interactions"][0]["drug_b"] == "Aspirin"
    assert result["extraction"]["monitoring"] == ["INR twice weekly"]
    assert result["guidance"].startswith("🚨 URGENT")


def test_drug_interactions_validation(client, make_service, service_override, user_headers):
    service_override(make_service())

    response = client.post(
        "/api/v1/medical/drug-interactions",
        json={"medications": ["warfarin"]},
        headers=user_headers,
    )

    assert response.status_code == 422

    response = client.post(
        "/api/v1/medical/drug-interactions",
        json={"medications": 5},
        headers=user_headers,
    )

    assert response.status_code == 422


def test_degraded_differential(client, make_service, service_override, user_headers):
    service_override(
        make_service(
            primary_error=ProviderUnavailable("HTTP 503", provider="gemini"),
            secondary_error=ProviderUnavailable("HTTP 503", provider="huggingface"),
        )
    )

    response = client.post(
        "/api/v1/medical/differential-diagnosis",
        json={"symptoms": "Intermittent joint pain in both knees", "patient_age": 58},
        headers=user_headers,
    )

    assert response.status_code == 200
    assert response.json()["result"]["status"] == "DEGRADED"


def test_clinical_decision_and_history(client, make_service, service_override):
    headers = {"X-User-Id": f"clinician-{uuid.uuid4().hex[:8]}"}
    service_override(make_service(primary_replies=["PRIMARY RECOMMENDATION: Start a statin. Evidence: HIGH"]))

    response = client.post(
        "/api/v1/medical/clinical-decision",
        json={
            "clinical_scenario": "58-year-old with LDL 4.9 mmol/L and no vascular disease",
            "decision_type": "treatment",
        },
        headers=headers,
    )
    assert response.status_code == 200

    history = client.get("/api/v1/medical/history", headers=headers).json()
    assert len(history) == 1
    assert history[0]["kind"] == "clinical_decision"
    assert history[0]["provider"] == "gemini"
    assert history[0]["risk_level"] == "LOW"


def test_ai_health(client, fake_provider, make_service, service_override):
    service = make_service()
    service.router.primary = fake_provider("gemini", available=False)
    service.router.secondary = fake_provider("huggingface", available=True)
    service_override(service)

    body = client.get("/api/v1/ai/health").json()

    assert body["status"] == "UP"
    assert body["providers"] == {"gemini": False, "huggingface": True}

    service.router.secondary = fake_provider("huggingface", available=False)
    assert client.get("/api/v1/ai/health").json()["status"] == "DEGRADED"


def test_risk_calculators(client):
    all_calcs = client.get("/api/v1/medical/risk-calculators").json()
    assert "general" in all_calcs
    assert "cardiology" in all_calcs

    cardio = client.get("/api/v1/medical/risk-calculators", params={"specialty": "Cardiology"}).json()
    assert set(cardio) == {"general", "cardiology"}


def test_article_registration(client, make_service, service_override):
    queue = service_override(make_service(primary_replies=["An AI-written summary."]))
    pmid = uuid.uuid4().hex[:12]

    response = client.post(
        "/api/v1/articles",
        json={"pmid": pmid, "title": "Statins", "abstract": "Statins reduce events in older adults."},
    )
    assert response.status_code == 202
    assert response.json()["summary_status"] == "pending"

    queue.shutdown(wait=True)

    article = client.get(f"/api/v1/articles/{pmid}").json()
    assert article["ai_summary"] == "An AI-written summary."
    assert article["summary_status"] == "completed"

    assert client.get("/api/v1/articles/does-not-exist").status_code == 404


def test_reference_data(client):
    body = client.get("/api/v1/medical/reference").json()

    assert "Heart Failure" in body["specialties"]["CARDIOLOGY"]
    assert body["drug_categories"]["anticoagulant"] == "Blood Thinner"
