"""HTTP-level tests: routing, auth and error mapping."""

import httpx
import pytest

from conftest import ORIGIN, TWO_CONTACTS
from lifeline.auth import create_token
from lifeline.main import app
from lifeline.services.qr_broker import AccessorInfo


@pytest.fixture
async def client(services):
    app.state.services = services
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def patient(make_patient):
    return await make_patient(conditions=["Asthma"], contacts=TWO_CONTACTS)


@pytest.fixture
def auth(patient) -> dict:
    return {"Authorization": f"Bearer {create_token(patient.id)}"}


@pytest.fixture
def admin_auth() -> dict:
    return {"Authorization": f"Bearer {create_token('ops', role='admin', display_name='Ops Desk')}"}


class TestEmergency:
    @pytest.mark.asyncio
    async def test_access_and_verify(self, client, patient) -> None:
        response = await client.post(
            "/api/emergency/access",
            json={
                "qr_token": patient.qr_token,
                "accessor_name": "Dr. Ruiz",
                "accessor_role": "Doctor",
                "latitude": ORIGIN[0],
                "longitude": ORIGIN[1],
            },
        )
        assert response.status_code == 201
        body = response.json()
        assert body["medical_info"]["conditions"] == ["Asthma"]
        assert len(body["representatives"]) == 2
        assert response.headers["Cache-Control"].startswith("no-store")

        verify = await client.get(f"/api/emergency/verify/{body['access_token']}")
        assert verify.status_code == 200
        assert verify.json()["valid"] is True

    @pytest.mark.asyncio
    async def test_unknown_qr_is_404(self, client) -> None:
        response = await client.post(
            "/api/emergency/access",
            json={"qr_token": "nope", "accessor_name": "Dr. Ruiz", "accessor_role": "Doctor"},
        )
        assert response.status_code == 404
        assert response.json() == {"detail": "Emergency profile not found"}

    @pytest.mark.asyncio
    async def test_bad_coordinates_is_400(self, client, patient) -> None:
        response = await client.post(
            "/api/emergency/access",
            json={
                "qr_token": patient.qr_token,
                "accessor_name": "Dr. Ruiz",
                "accessor_role": "Doctor",
                "latitude": 120,
                "longitude": 0,
            },
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize("coordinates", [{"latitude": 19.4}, {"longitude": -99.1}])
    async def test_half_coordinate_pair_is_400(self, client, patient, services, coordinates) -> None:
        response = await client.post(
            "/api/emergency/access",
            json={
                "qr_token": patient.qr_token,
                "accessor_name": "Dr. Ruiz",
                "accessor_role": "Doctor",
                **coordinates,
            },
        )
        assert response.status_code == 400
        assert response.json() == {"detail": "latitude and longitude must be provided together"}
        assert await services.broker.access_history(patient.id) == []

    @pytest.mark.asyncio
    async def test_expired_token_is_401(self, client, services, patient, clock) -> None:
        result = await services.broker.initiate(patient.qr_token, AccessorInfo(name="Nurse", role="Nurse"))
        clock.advance(minutes=61)
        response = await client.get(f"/api/emergency/verify/{result.access_token}")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_history_requires_token(self, client, auth) -> None:
        assert (await client.get("/api/emergency/history")).status_code == 401
        response = await client.get("/api/emergency/history", headers=auth)
        assert response.status_code == 200
        assert response.json()["total"] == 0


class TestPanic:
    @pytest.mark.asyncio
    async def test_activate_and_cancel_twice(self, client, auth, facilities) -> None:
        response = await client.post(
            "/api/panic", json={"latitude": ORIGIN[0], "longitude": ORIGIN[1]}, headers=auth
        )
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "ACTIVE"
        assert len(body["contacts_notified"]) == 2
        assert body["facilities"]

        alert_id = body["alert_id"]
        assert (await client.delete(f"/api/panic/{alert_id}", headers=auth)).status_code == 200
        assert (await client.delete(f"/api/panic/{alert_id}", headers=auth)).status_code == 409

        detail = await client.get(f"/api/panic/{alert_id}", headers=auth)
        assert detail.json()["status"] == "CANCELLED"

    @pytest.mark.asyncio
    async def test_cancel_unknown_is_404(self, client, auth) -> None:
        assert (await client.delete("/api/panic/missing", headers=auth)).status_code == 404

    @pytest.mark.asyncio
    async def test_resolve_requires_admin(self, client, auth, admin_auth) -> None:
        created = await client.post("/api/panic", json={"latitude": ORIGIN[0], "longitude": ORIGIN[1]}, headers=auth)
        alert_id = created.json()["alert_id"]

        assert (await client.post(f"/api/panic/{alert_id}/resolve", headers=auth)).status_code == 403
        resolved = await client.post(f"/api/panic/{alert_id}/resolve", headers=admin_auth)
        assert resolved.status_code == 200
        assert resolved.json()["resolved_by"] == "Ops Desk"

    @pytest.mark.asyncio
    async def test_active_and_history(self, client, auth) -> None:
        await client.post("/api/panic", json={"latitude": ORIGIN[0], "longitude": ORIGIN[1]}, headers=auth)
        active = await client.get("/api/panic/active", headers=auth)
        history = await client.get("/api/panic/history", params={"limit": 5}, headers=auth)
        assert active.json()["total"] == 1
        assert history.json()["total"] == 1


class TestFacilities:
    @pytest.mark.asyncio
    async def test_nearby(self, client, facilities) -> None:
        response = await client.get("/api/facilities/nearby", params={"lat": ORIGIN[0], "lon": ORIGIN[1]})
        assert response.status_code == 200
        names = [f["facility"]["name"] for f in response.json()["facilities"]]
        assert names[0] == "Clinica Centro"

    @pytest.mark.asyncio
    async def test_for_conditions(self, client, facilities) -> None:
        response = await client.get(
            "/api/facilities/for-conditions",
            params={"lat": ORIGIN[0], "lon": ORIGIN[1], "conditions": ["Stroke"]},
        )
        body = response.json()
        assert body["facilities"][0]["facility"]["name"] == "Hospital General"
        assert "Neurology" in body["required_specialties"]

    @pytest.mark.asyncio
    async def test_invalid_coordinates(self, client) -> None:
        response = await client.get("/api/facilities/nearby", params={"lat": 91, "lon": 0})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_conditions(self, client) -> None:
        response = await client.get("/api/facilities/conditions")
        assert "Stroke" in response.json()["conditions"]


class TestContactsAndProfile:
    @pytest.mark.asyncio
    async def test_reorder(self, client, auth) -> None:
        listed = (await client.get("/api/contacts", headers=auth)).json()["contacts"]
        ids = [c["id"] for c in reversed(listed)]

        response = await client.put("/api/contacts/reorder", json={"ordered_ids": ids}, headers=auth)
        assert response.status_code == 200
        assert [c["id"] for c in response.json()["contacts"]] == ids

        bad = await client.put("/api/contacts/reorder", json={"ordered_ids": ids[:1]}, headers=auth)
        assert bad.status_code == 400

    @pytest.mark.asyncio
    async def test_create_and_delete(self, client, auth) -> None:
        created = await client.post(
            "/api/contacts",
            json={"name": "Marta", "phone": "+525500000009", "relation": "Friend", "priority": 1},
            headers=auth,
        )
        assert created.status_code == 201
        assert created.json()["priority"] == 1

        contact_id = created.json()["id"]
        assert (await client.delete(f"/api/contacts/{contact_id}", headers=auth)).status_code == 200
        remaining = (await client.get("/api/contacts", headers=auth)).json()["contacts"]
        assert [c["priority"] for c in remaining] == [1, 2]

    @pytest.mark.asyncio
    async def test_qr_regenerate(self, client, auth, patient) -> None:
        response = await client.post("/api/profile/qr/regenerate", headers=auth)
        assert response.status_code == 200
        assert response.json()["qr_token"] != patient.qr_token

        qr = await client.get("/api/profile/qr", headers=auth)
        assert qr.json()["qr_token"] == response.json()["qr_token"]

    @pytest.mark.asyncio
    async def test_medical_info_update(self, client, auth) -> None:
        response = await client.put("/api/profile/medical", json={"allergies": ["Latex"]}, headers=auth)
        assert response.status_code == 200
        assert response.json()["allergies"] == ["Latex"]
        assert response.json()["conditions"] == ["Asthma"]


@pytest.mark.asyncio
async def test_health(client) -> None:
    response = await client.get("/api/health")
    assert response.json() == {"status": "healthy", "service": "lifeline"}


@pytest.mark.asyncio
async def test_invalid_token_is_401(client) -> None:
    response = await client.get("/api/contacts", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
