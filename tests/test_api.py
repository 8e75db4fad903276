from safetriage.config.settings import settings
from safetriage.services import prompt_settings, session_store
from safetriage.services.session_store import MongoSessionStore

TURN_URL = "/api/v1/triage/intake/{}/turn"


def _turn(client, session_id, **body):
    return client.post(TURN_URL.format(session_id), json=body)


def test_full_intake_conversation(client):
    first = _turn(client, "s-1", text="mild headache and a runny nose")
    assert first.status_code == 200
    assert first.json()["status"] == "awaiting"
    assert first.json()["awaiting"] == "severity"
    assert "1 to 10" in first.json()["prompt"]

    assert _turn(client, "s-1", text="4").json()["awaiting"] == "duration"
    assert _turn(client, "s-1", text="2 days").json()["awaiting"] == "age"

    done = _turn(client, "s-1", text="34").json()
    assert done["status"] == "complete"
    assert "awaiting" not in done
    assert done["verdict"]["urgencyTier"] == "routine"
    assert done["verdict"]["systemAction"] == "normal"
    assert done["verdict"]["rationale"] == ["band.routine.self_care"]


def test_structured_fields_and_skips_complete_in_one_turn(client):
    response = _turn(
        client,
        "s-2",
        text="my lips are turning blue and I cannot breathe",
        severity=7,
        skipDuration=True,
        skipAge=True,
    )

    body = response.json()
    assert body["status"] == "complete"
    assert body["verdict"]["systemAction"] == "emergency_circuit_breaker"
    assert body["verdict"]["urgencyTier"] == "emergency"


def test_state_and_clear(client):
    _turn(client, "s-3", text="sore throat", severity=3)

    state = client.get("/api/v1/triage/intake/s-3")
    assert state.status_code == 200
    assert state.json()["state"]["freeText"] == "sore throat"
    assert state.json()["state"]["awaiting"] == "duration"

    cleared = client.delete("/api/v1/triage/intake/s-3")
    assert cleared.json() == {"sessionId": "s-3", "cleared": True}
    assert client.get("/api/v1/triage/intake/s-3").status_code == 404


def test_out_of_range_severity_is_rejected(client):
    assert _turn(client, "s-4", text="cough", severity=11).status_code == 422


def test_pregnant_male_is_rejected(client):
    response = _turn(client, "s-5", text="nausea", sexAtBirth="male", pregnant=True)

    assert response.status_code == 422
    assert client.get("/api/v1/triage/intake/s-5").status_code == 404


def test_invalid_session_id_is_rejected(client):
    assert _turn(client, "bad id!", text="cough").status_code == 422


def test_decide_chest_pain(client):
    response = client.post(
        "/api/v1/triage/decide",
        json={"text": "crushing chest pain and sweating", "severity": 6, "ageYears": 58},
    )

    body = response.json()
    assert response.status_code == 200
    assert body["systemAction"] == "emergency_circuit_breaker"
    assert body["urgencyTier"] == "emergency"
    assert "narrative" not in body


def test_prescription_check(client):
    response = client.post(
        "/api/v1/triage/prescriptions/check",
        json={"currentMeds": ["Coumadin 5mg"], "newPrescription": "aspirin"},
    )

    body = response.json()
    assert response.status_code == 200
    assert body["overallRisk"] == "major"
    assert body["normalized"] == ["warfarin", "aspirin"]
    assert body["findings"][0]["severity"] == "major"


def test_prescription_check_requires_a_medication(client):
    response = client.post("/api/v1/triage/prescriptions/check", json={"currentMeds": []})

    assert response.status_code == 422


def test_report_extraction(client):
    response = client.post(
        "/api/v1/triage/reports/extract",
        json={"text": "Hgb: 10.2 g/dL (12.0-15.5)\nPage 1 of 1"},
    )

    body = response.json()
    assert body["values"][0]["name"] == "hemoglobin"
    assert body["values"][0]["flag"] == "low"
    assert body["values"][0]["referenceRange"] == {"low": 12.0, "high": 15.5}
    assert body["warnings"] == []


def test_cleanup_and_stats(client, clock):
    _turn(client, "old", text="cough")
    clock.advance(minutes=31)
    _turn(client, "new", text="rash")

    stats = client.get("/api/v1/triage/maintenance/stats").json()
    assert stats == {"activeCount": 1, "expiredCount": 1}

    cleanup = client.get("/api/v1/triage/maintenance/cleanup")
    assert cleanup.status_code == 200
    assert cleanup.json() == {"deletedCount": 1}


def test_cleanup_requires_cron_secret_when_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "cron_secret", "s3cret")
    url = "/api/v1/triage/maintenance/cleanup"

    assert client.get(url).status_code == 401
    assert client.get(url, headers={"Authorization": "Bearer wrong"}).status_code == 401
    assert client.get(url, headers={"Authorization": "Bearer s3cret"}).status_code == 200


def test_system_prompt_defaults_without_database(client, monkeypatch):
    monkeypatch.setattr(prompt_settings, "_prompt_settings_service", None)

    response = client.get("/api/v1/triage/settings/system-prompt")

    assert response.status_code == 200
    assert response.json()["source"] == "default"
    assert response.json()["systemPrompt"] == prompt_settings.DEFAULT_SYSTEM_PROMPT


def test_store_outage_returns_503(client, clock):
    async def unreachable():
        raise RuntimeError("Database not initialized. Call connect_db() first.")

    session_store.reset_session_store(
        MongoSessionStore(clock=clock, collection_factory=unreachable)
    )

    response = _turn(client, "s-6", text="cough")

    assert response.status_code == 503
    assert "unavailable" in response.json()["detail"]


def test_health(client):
    body = client.get("/health").json()

    assert body["status"] == "ok"
    assert body["dependencies"]["session_store"] == "memory: connected"
