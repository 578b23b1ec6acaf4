"""End-to-end tests of the REST API against an in-memory store."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from ahara.core.config.settings import Settings
from ahara.core.server.app import create_app
from ahara.core.server.main import seed_sample_patients
from ahara.domains.ayurveda.domain_logic.generator import DietPlanGenerator, GeneratorConfig

AYUSHI_ID = "68cdcba34ddc05b1f94c8350"
MISSING_ID = "aaaaaaaaaaaaaaaaaaaaaaaa"


def _client(repository, audit_logger, config: GeneratorConfig) -> TestClient:
    app = create_app(
        settings=Settings(),
        repository_override=repository,
        generator_override=DietPlanGenerator(config),
        audit_override=audit_logger,
    )
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def client(patient_repository, audit_logger):
    return _client(patient_repository, audit_logger, GeneratorConfig(provider="mock", fixture_delay_seconds=0))


@pytest.fixture
def keyless_client(patient_repository, audit_logger):
    return _client(patient_repository, audit_logger, GeneratorConfig(provider="openai", api_key=""))


def _create(client, payload) -> dict:
    response = client.post("/api/patients", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestRoot:
    def test_welcome(self, client):
        body = client.get("/").json()
        assert body["success"] is True
        assert body["endpoints"]["patients"] == "/api/patients"

    def test_health(self, client, patient_payload):
        _create(client, patient_payload)
        body = client.get("/health").json()
        assert body["success"] is True
        assert body["environment"] == "test"
        assert body["patients"] == 1
        assert body["timestamp"].endswith("Z")

    def test_unknown_route(self, client):
        response = client.get("/api/nothing-here")
        assert response.status_code == 404
        body = response.json()
        assert body == {
            "success": False,
            "message": "Endpoint not found",
            "requestedUrl": "/api/nothing-here",
            "availableEndpoints": body["availableEndpoints"],
        }
        assert "GET /api/patients" in body["availableEndpoints"]


class TestPatientCrud:
    def test_create_and_get(self, client, patient_payload):
        created = _create(client, patient_payload)
        assert len(created["_id"]) == 24
        assert created["calculatedBMI"] == pytest.approx(25.47, abs=0.01)
        assert created["dominantVikriti"] == "Pitta"

        response = client.get(f"/api/patients/{created['_id'].upper()}")
        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Ravi Kumar"

    def test_out_of_range_calories(self, client, patient_factory):
        payload = patient_factory(dietaryHabits={"type": "Vegetarian", "targetCalories": 6000})
        response = client.post("/api/patients", json=payload)
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Validation error"
        assert "dietaryHabits.targetCalories" in [e["field"] for e in body["errors"]]

    def test_empty_body(self, client):
        response = client.post("/api/patients")
        assert response.status_code == 400
        assert response.json()["errors"]

    def test_malformed_json(self, client):
        response = client.post(
            "/api/patients", content="{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid JSON format"}

    def test_duplicate_email(self, client, patient_payload, patient_factory):
        _create(client, patient_payload)
        other = patient_factory(
            name="Someone Else",
            contactInfo={"email": "ravi.kumar@example.com", "phone": "+919800000000"},
        )
        response = client.post("/api/patients", json=other)
        assert response.status_code == 409
        assert response.json()["field"] == "contactInfo.email"

    def test_malformed_id(self, client):
        for method in ("get", "delete"):
            response = getattr(client, method)("/api/patients/not-an-id")
            assert response.status_code == 400
            assert response.json()["message"] == "Invalid patient ID format"

    def test_missing_patient(self, client):
        response = client.get(f"/api/patients/{MISSING_ID}")
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Patient not found"}

    def test_full_replace_validates(self, client, patient_payload):
        pid = _create(client, patient_payload)["_id"]
        payload = dict(patient_payload, age=43)
        response = client.put(f"/api/patients/{pid}", json=payload)
        assert response.status_code == 200
        assert response.json()["data"]["age"] == 43

        response = client.put(f"/api/patients/{pid}", json={"name": "Only a name"})
        assert response.status_code == 400

    def test_partial_update(self, client, patient_payload):
        pid = _create(client, patient_payload)["_id"]
        response = client.put(
            f"/api/patients/{pid}",
            json={"name": "Ravi K.", "_id": MISSING_ID},
            headers={"X-Partial-Update": "true"},
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["name"] == "Ravi K."
        assert data["_id"] == pid
        assert data["age"] == 42

    def test_partial_update_rejects_wrong_shapes(self, client, patient_payload, patient_factory):
        pid = _create(client, patient_payload)["_id"]
        _create(
            client,
            patient_factory(name="Other", contactInfo={"email": "o@example.com", "phone": "+919811111111"}),
        )
        headers = {"X-Partial-Update": "true"}

        response = client.put(f"/api/patients/{pid}", json={"prakriti": "Vata"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "prakriti"

        response = client.put(
            f"/api/patients/{pid}",
            json={"physicalMeasurements": {"weight": 70, "height": {"cm": 175}}},
            headers=headers,
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "physicalMeasurements.weight"

        assert client.get(f"/api/patients/{pid}").json()["data"]["prakriti"] == patient_payload["prakriti"]
        assert client.get(f"/api/patients/{pid}/summary").status_code == 200
        listing = client.get("/api/patients")
        assert listing.status_code == 200
        assert listing.json()["pagination"]["totalPatients"] == 2

    def test_partial_update_skips_bounds(self, client, patient_payload):
        pid = _create(client, patient_payload)["_id"]
        response = client.put(
            f"/api/patients/{pid}",
            json={"dietaryHabits": {"targetCalories": 6000}},
            headers={"X-Partial-Update": "true"},
        )
        assert response.status_code == 200
        assert response.json()["data"]["dietaryHabits"] == {"targetCalories": 6000}

    def test_partial_update_non_object_body(self, client, patient_payload):
        pid = _create(client, patient_payload)["_id"]
        response = client.put(f"/api/patients/{pid}", json=["x"], headers={"X-Partial-Update": "true"})
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "body"

    def test_soft_delete(self, client, patient_payload, audit_logger):
        pid = _create(client, patient_payload)["_id"]
        response = client.delete(f"/api/patients/{pid}")
        assert response.json() == {"success": True, "message": "Patient deleted successfully"}

        assert client.get(f"/api/patients/{pid}").status_code == 404
        assert client.delete(f"/api/patients/{pid}").status_code == 404
        assert client.get("/api/patients").json()["pagination"]["totalPatients"] == 0
        assert audit_logger.counters()["deletions"] == 1

        # the contact values are free again once the holder is inactive
        assert client.post("/api/patients", json=patient_payload).status_code == 201

    def test_summary(self, client, patient_payload):
        pid = _create(client, patient_payload)["_id"]
        summary = client.get(f"/api/patients/{pid}/summary").json()["data"]
        assert summary["basicInfo"]["name"] == "Ravi Kumar"
        assert summary["constitution"]["dominantPrakriti"] == "Pitta"
        assert summary["currentHealth"]["conditions"] == ["Acidity and heat in body"]
        assert summary["currentHealth"]["targetCalories"] == 2400


class TestPatientListing:
    def _seed(self, client, patient_factory, count):
        for n in range(count):
            _create(
                client,
                patient_factory(
                    name=f"Patient {n}",
                    contactInfo={"email": f"p{n}@example.com", "phone": f"+91980000000{n}"},
                ),
            )

    def test_pagination(self, client, patient_factory):
        self._seed(client, patient_factory, 5)
        body = client.get("/api/patients", params={"page": 2, "limit": 2}).json()
        assert len(body["data"]) == 2
        assert body["pagination"] == {
            "currentPage": 2,
            "totalPages": 3,
            "totalPatients": 5,
            "hasNextPage": True,
            "hasPrevPage": True,
        }

    def test_search_and_sort(self, client, patient_factory):
        self._seed(client, patient_factory, 3)
        body = client.get(
            "/api/patients", params={"search": "patient", "sortBy": "name", "sortOrder": "asc"}
        ).json()
        assert [p["name"] for p in body["data"]] == ["Patient 0", "Patient 1", "Patient 2"]

        body = client.get("/api/patients", params={"search": "p1@EXAMPLE"}).json()
        assert [p["name"] for p in body["data"]] == ["Patient 1"]

    def test_bad_sort_field(self, client):
        response = client.get("/api/patients", params={"sortBy": "password"})
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "sortBy"

    def test_non_integer_page(self, client):
        response = client.get("/api/patients", params={"page": "two"})
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "page"


class TestDietPlanGeneration:
    def test_fixture_patient(self, client, patient_repository, audit_logger):
        assert seed_sample_patients(patient_repository) == [AYUSHI_ID]
        response = client.post(f"/api/diet-plans/generate/{AYUSHI_ID}")
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Diet plan generated successfully"
        assert body["meta"]["source"] == "fixture"
        assert body["meta"]["tokensUsed"] == 0
        assert body["meta"]["patientName"] == "Ayushi Singh"
        assert body["data"]["patientInfo"]["name"] == "Ayushi Singh"
        assert audit_logger.counters()["fixture"] == 1

    def test_fallback_without_credential(self, keyless_client, patient_payload, audit_logger):
        pid = _create(keyless_client, patient_payload)["_id"]
        response = keyless_client.post(f"/api/diet-plans/generate/{pid}")
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["meta"]["source"] == "fallback"
        assert body["meta"]["fallbackReason"] == "OPENAI_API_KEY is not configured"
        assert body["data"]["source"] == "fallback"
        assert len(body["data"]["mealPlan"]["dinner"]) == 3

        events = audit_logger.get_events(action="plan_generation")
        assert events[0]["patient_id"] == pid
        assert events[0]["plan_source"] == "fallback"

    def test_generate_for_missing_patient(self, client):
        assert client.post(f"/api/diet-plans/generate/{MISSING_ID}").status_code == 404

    def test_generate_direct_supplied_only(self, client):
        response = client.post(
            "/api/diet-plans/generate-direct",
            json={"patientData": {"name": "Walk-in", "prakriti": "Kapha dominant"}, "variation": 1},
        )
        assert response.status_code == 200
        meta = response.json()["meta"]
        assert meta["dataSource"] == "Supplied Only"
        assert meta["patientId"] is None
        assert meta["patientName"] == "Walk-in"

    def test_generate_direct_prefers_stored_record(self, client, patient_payload):
        pid = _create(client, patient_payload)["_id"]
        response = client.post(
            "/api/diet-plans/generate-direct",
            json={"patientData": {"_id": pid, "name": "Stale Name"}},
        )
        meta = response.json()["meta"]
        assert meta["dataSource"] == "Store + Supplied"
        assert meta["patientName"] == "Ravi Kumar"
        assert meta["patientId"] == pid

    def test_generate_direct_fixture_by_name(self, client):
        response = client.post(
            "/api/diet-plans/generate-direct", json={"patientData": {"name": "Ayushi"}}
        )
        assert response.json()["meta"]["source"] == "fixture"

    @pytest.mark.parametrize(
        "body, field",
        [({}, "patientData"), ({"patientData": "x"}, "patientData"),
         ({"patientData": {}, "variation": "2"}, "variation")],
    )
    def test_generate_direct_rejects(self, client, body, field):
        response = client.post("/api/diet-plans/generate-direct", json=body)
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == field


class TestExport:
    def test_export_plan(self, client, patient_repository):
        seed_sample_patients(patient_repository)
        plan = client.post(f"/api/diet-plans/generate/{AYUSHI_ID}").json()["data"]
        response = client.post("/api/diet-plans/export/plan", json={"plan": plan})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        disposition = response.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="ayurvedic-diet-plan-')
        assert response.text.startswith("PERSONALIZED AYURVEDIC DIET PLAN")

    def test_export_recipes(self, client, patient_repository):
        seed_sample_patients(patient_repository)
        plan = client.post(f"/api/diet-plans/generate/{AYUSHI_ID}").json()["data"]
        response = client.post("/api/diet-plans/export/recipes", json={"plan": plan})
        assert 'filename="ayurvedic-recipes-ayushi-singh-' in response.headers["content-disposition"]
        assert "--- LAUKI CURRY ---" in response.text

    def test_export_recipes_with_scalar_fields(self, client):
        plan = {"recipes": {"breakfast": {"title": "Upma", "ingredients": 5, "method": "Stir"}}}
        response = client.post("/api/diet-plans/export/recipes", json={"plan": plan})
        assert response.status_code == 200
        assert "• 5" in response.text
        assert "1. Stir" in response.text

    def test_export_requires_plan(self, client):
        response = client.post("/api/diet-plans/export/plan", json={})
        assert response.status_code == 400
        assert response.json()["errors"] == [{"field": "plan", "message": "Diet plan is required"}]


class TestDiagnostics:
    def test_service_health(self, client, patient_repository):
        seed_sample_patients(patient_repository)
        client.post(f"/api/diet-plans/generate/{AYUSHI_ID}")
        status = client.get("/api/diet-plans/health").json()["status"]
        assert status["configured"] is True
        assert status["provider"] == "mock"
        assert status["audit"]["generations"] == 1
        assert status["audit"]["fixture"] == 1

    def test_unconfigured_health(self, keyless_client):
        status = keyless_client.get("/api/diet-plans/health").json()["status"]
        assert status["configured"] is False

    def test_generation_test_route(self, client, patient_payload):
        pid = _create(client, patient_payload)["_id"]
        body = client.get(f"/api/diet-plans/test/{pid}").json()
        assert body["message"] == "Diet plan generation test completed"
        assert body["debug"]["patientName"] == "Ravi Kumar"
        assert body["debug"]["generationSuccess"] is True
        assert body["result"]["success"] is True

    def test_generation_test_route_without_credential(self, keyless_client, patient_payload):
        pid = _create(keyless_client, patient_payload)["_id"]
        response = keyless_client.get(f"/api/diet-plans/test/{pid}")
        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["credential"] == "OPENAI_API_KEY"
        assert "OPENAI_API_KEY" in body["message"]
