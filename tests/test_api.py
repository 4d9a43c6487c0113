"""End-to-end tests through the FastAPI app with a per-test SQLite database."""

from datetime import timedelta

from barberflow.repositories.sql import SqlBookingTokenRepository
from barberflow.security import generate_token
from barberflow.utils import utcnow
from tests.conftest import (
    BARBER_ID,
    CUSTOMER_PHONE,
    OTHER_BARBER_ID,
    SERVICE_ID,
    SHOP_ID,
    business_time,
    future_day,
)


async def issue_link(client, **overrides):
    body = {"barbershopId": SHOP_ID, "customerPhone": CUSTOMER_PHONE}
    body.update(overrides)
    response = await client.post("/auth/booking-link", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def token_from(link: dict) -> str:
    return link["bookingUrl"].rsplit("/", 1)[1]


def session_cookie(response) -> str:
    header = response.headers["set-cookie"]
    name, _, rest = header.partition("=")
    assert name == "session"
    return rest.split(";", 1)[0]


async def start_session(client) -> dict:
    link = await issue_link(client, barberId=BARBER_ID)
    response = await client.get(f"/auth/booking/{token_from(link)}")
    assert response.status_code == 200, response.text
    client.cookies.clear()
    return {"Cookie": f"session={session_cookie(response)}"}


class TestBookingLinkEndpoint:
    async def test_issue_link(self, client):
        link = await issue_link(client, barberId=BARBER_ID)

        assert link["bookingUrl"].startswith("http://localhost:3000/booking/")
        assert len(token_from(link)) == 43
        assert "expiresAt" in link

    async def test_unknown_barbershop(self, client):
        response = await client.post(
            "/auth/booking-link",
            json={
                "barbershopId": "99999999-9999-4999-8999-999999999999",
                "customerPhone": CUSTOMER_PHONE,
            },
        )
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_barber_from_another_barbershop(self, client):
        response = await client.post(
            "/auth/booking-link",
            json={
                "barbershopId": SHOP_ID,
                "barberId": OTHER_BARBER_ID,
                "customerPhone": CUSTOMER_PHONE,
            },
        )
        assert response.status_code == 404

    async def test_short_phone_is_a_validation_error(self, client):
        response = await client.post(
            "/auth/booking-link",
            json={"barbershopId": SHOP_ID, "customerPhone": "123"},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Validation error"


class TestValidateTokenEndpoint:
    async def test_valid_token_sets_session_cookie(self, client):
        link = await issue_link(client, barberId=BARBER_ID)

        response = await client.get(f"/auth/booking/{token_from(link)}")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Booking session started"
        assert body["barbershopId"] == SHOP_ID
        assert body["barberId"] == BARBER_ID

        cookie = response.headers["set-cookie"].lower()
        assert cookie.startswith("session=")
        assert "httponly" in cookie
        assert "samesite=strict" in cookie
        assert "path=/" in cookie
        assert "max-age=1800" in cookie

    async def test_token_cannot_be_reused(self, client):
        link = await issue_link(client)
        token = token_from(link)

        assert (await client.get(f"/auth/booking/{token}")).status_code == 200
        response = await client.get(f"/auth/booking/{token}")

        assert response.status_code == 410
        assert response.json()["code"] == "TOKEN_USED"

    async def test_expired_token(self, client, sessionmaker):
        plaintext, token_hash = generate_token()
        async with sessionmaker() as session:
            await SqlBookingTokenRepository(session).create(
                token_hash=token_hash,
                barbershop_id=SHOP_ID,
                barber_id=None,
                customer_phone=CUSTOMER_PHONE,
                expires_at=utcnow() - timedelta(minutes=1),
            )

        response = await client.get(f"/auth/booking/{plaintext}")

        assert response.status_code == 410
        assert response.json()["code"] == "TOKEN_EXPIRED"

    async def test_unknown_token(self, client):
        plaintext, _ = generate_token()
        response = await client.get(f"/auth/booking/{plaintext}")

        assert response.status_code == 404
        assert response.json()["code"] == "INVALID_TOKEN"

    async def test_short_token_rejected_before_lookup(self, client):
        response = await client.get("/auth/booking/too-short")
        assert response.status_code == 400


class TestAvailabilityEndpoint:
    async def test_future_day(self, client):
        day = future_day()
        response = await client.get(
            "/availability", params={"barberId": BARBER_ID, "date": day.isoformat()}
        )

        assert response.status_code == 200
        slots = response.json()["slots"]
        assert len(slots) == 18
        assert set(slots[0]) == {"startTime", "endTime"}

    async def test_past_day_is_empty(self, client):
        day = future_day(days=-3)
        response = await client.get(
            "/availability", params={"barberId": BARBER_ID, "date": day.isoformat()}
        )

        assert response.status_code == 200
        assert response.json() == {"slots": []}

    async def test_missing_params(self, client):
        response = await client.get("/availability")
        assert response.status_code == 400


class TestAppointmentsEndpoint:
    async def test_requires_session(self, client):
        response = await client.post(
            "/appointments",
            json={
                "barberId": BARBER_ID,
                "serviceId": SERVICE_ID,
                "startTime": business_time(future_day(), 10).isoformat(),
            },
        )
        assert response.status_code == 401

    async def test_book_then_conflict(self, client):
        headers = await start_session(client)
        day = future_day()
        body = {
            "barberId": BARBER_ID,
            "serviceId": SERVICE_ID,
            "startTime": business_time(day, 10).isoformat(),
        }

        created = await client.post("/appointments", json=body, headers=headers)
        assert created.status_code == 201, created.text
        payload = created.json()
        assert payload["message"] == "Appointment created successfully."
        assert payload["appointment"]["status"] == "scheduled"
        assert payload["appointment"]["barberId"] == BARBER_ID

        conflict = await client.post("/appointments", json=body, headers=headers)
        assert conflict.status_code == 409
        assert conflict.json()["code"] == "SLOT_OCCUPIED"

        availability = await client.get(
            "/availability", params={"barberId": BARBER_ID, "date": day.isoformat()}
        )
        assert len(availability.json()["slots"]) == 17

    async def test_naive_start_time_rejected(self, client):
        headers = await start_session(client)
        response = await client.post(
            "/appointments",
            json={
                "barberId": BARBER_ID,
                "serviceId": SERVICE_ID,
                "startTime": f"{future_day().isoformat()}T10:00:00",
            },
            headers=headers,
        )
        assert response.status_code == 400

    async def test_barber_outside_session_barbershop(self, client):
        headers = await start_session(client)
        response = await client.post(
            "/appointments",
            json={
                "barberId": OTHER_BARBER_ID,
                "serviceId": SERVICE_ID,
                "startTime": business_time(future_day(), 10).isoformat(),
            },
            headers=headers,
        )
        assert response.status_code == 404

    async def test_cancel_frees_slot(self, client):
        headers = await start_session(client)
        start = business_time(future_day(), 11).isoformat()
        body = {"barberId": BARBER_ID, "serviceId": SERVICE_ID, "startTime": start}

        created = await client.post("/appointments", json=body, headers=headers)
        appointment_id = created.json()["appointment"]["id"]

        canceled = await client.post(f"/appointments/{appointment_id}/cancel", headers=headers)
        assert canceled.status_code == 200
        assert canceled.json()["appointment"]["status"] == "canceled"

        again = await client.post(f"/appointments/{appointment_id}/cancel", headers=headers)
        assert again.status_code == 409

        rebooked = await client.post("/appointments", json=body, headers=headers)
        assert rebooked.status_code == 201


class TestSystemEndpoints:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["database"] == "ok"

    async def test_version(self, client):
        response = await client.get("/version")
        assert response.json()["app"] == "BarberFlow"

    async def test_metrics_exposed(self, client):
        await client.get("/health")
        response = await client.get("/metrics")
        assert response.status_code == 200
        assert "barberflow_http_requests_total" in response.text
