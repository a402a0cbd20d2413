# tests/test_api.py
import uuid
from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from backoffice.api.app import create_app
from backoffice.db.enums import UserRole
from backoffice.db.models._base import utcnow


@pytest.fixture
async def client(db):
    transport = ASGITransport(app=create_app())
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


def contest_body(**overrides):
    now = utcnow()
    body = {
        "title": "Trading cup",
        "type": "trading",
        "status": "active",
        "start_date": (now - timedelta(days=1)).isoformat(),
        "end_date": (now + timedelta(days=1)).isoformat(),
        "draw_date": (now + timedelta(days=2)).isoformat(),
        "max_winners": 2,
        "prizes": [{"position": 1, "name": "Gold", "value": 100}],
    }
    body.update(overrides)
    return body


async def test_contest_crud(client, make_user):
    admin = await make_user(role=UserRole.ADMIN)
    headers = {"X-Admin-Id": str(admin.id)}

    resp = await client.post("/api/contests", json=contest_body(), headers=headers)
    assert resp.status_code == 201
    contest = resp.json()["data"]
    assert contest["created_by_id"] == str(admin.id)
    assert contest["prizes"][0]["name"] == "Gold"

    resp = await client.patch(f"/api/contests/{contest['id']}", json={"title": "Renamed", "rules": None}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["title"] == "Renamed"

    resp = await client.get("/api/contests", params={"status": "active"})
    assert resp.json()["total"] == 1

    user = await make_user()
    resp = await client.post(f"/api/contests/{contest['id']}/participants", json={"user_id": str(user.id)})
    assert resp.status_code == 200
    assert resp.json()["created"] is True

    resp = await client.delete(f"/api/contests/{contest['id']}", headers=headers)
    assert resp.status_code == 409
    assert resp.json()["success"] is False
    assert resp.json()["code"] == "ContestHasParticipantsError"

    resp = await client.get("/api/contests/participants")
    assert [row["user_id"] for row in resp.json()["data"]] == [str(user.id)]


async def test_error_mapping(client):
    resp = await client.get(f"/api/contests/{uuid.uuid4()}")
    assert resp.status_code == 404
    assert resp.json()["success"] is False

    now = utcnow()
    resp = await client.post("/api/contests", json=contest_body(draw_date=now.isoformat()))
    assert resp.status_code == 422
    assert resp.json()["code"] == "InvalidDateRangeError"

    resp = await client.put("/api/stats", json={"total_gains": -5, "total_places_sold": 0, "total_winners": 0})
    assert resp.status_code == 422
    assert resp.json()["success"] is False


async def test_admin_header_is_checked(client, make_user):
    member = await make_user()
    resp = await client.post("/api/contests", json=contest_body(), headers={"X-Admin-Id": str(member.id)})
    assert resp.status_code == 403

    resp = await client.post("/api/contests", json=contest_body(), headers={"X-Admin-Id": str(uuid.uuid4())})
    assert resp.status_code == 404


async def test_weekly_endpoints(client):
    resp = await client.post("/api/weekly-contest")
    assert resp.status_code == 201
    created = resp.json()["data"]

    resp = await client.post("/api/weekly-contest")
    assert resp.status_code == 409

    resp = await client.get("/api/weekly-contest/current")
    body = resp.json()
    assert body["data"]["id"] == created["id"]
    assert body["week_number"] == created["week_number"]

    resp = await client.get("/api/weekly-contest/stats", params={"year": created["year"]})
    assert resp.json()["data"]["total_contests"] >= 1

    resp = await client.get("/api/weekly-contest/scheduler")
    assert resp.json()["data"]["is_running"] is False


async def test_standalone_winner_endpoints(client):
    payload = {
        "week_of_year": "2025-W11",
        "winners": [
            {"first_name": "Ann", "last_name": "Doe", "prize": "Voucher", "amount": 30},
            {"first_name": "Bob", "last_name": "Roe", "prize": "Voucher", "amount": 20},
        ],
    }
    resp = await client.post("/api/standalone-winners", json=payload)
    assert resp.status_code == 201
    ann, bob = resp.json()["data"]
    assert (ann["position"], bob["position"]) == (1, 2)

    resp = await client.put(f"/api/standalone-winners/{bob['id']}", json={"position": 1})
    assert resp.json()["data"]["position"] == 1

    resp = await client.get("/api/standalone-winners", params={"week": "2025-W11"})
    assert [w["first_name"] for w in resp.json()["data"]] == ["Bob", "Ann"]

    resp = await client.get("/api/stats")
    assert resp.json()["data"]["total_winners"] == 2

    resp = await client.delete("/api/standalone-winners/week/2025-W11")
    assert resp.json()["deleted"] == 2

    resp = await client.get("/api/stats/display")
    assert resp.json()["data"]["total_winners"] == 0
