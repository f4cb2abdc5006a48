"""
End-to-end checks against a real PostgreSQL database.

Skipped unless TEST_DATABASE_URL points at a disposable database; every
table is truncated before each test.
"""

import os
from concurrent.futures import ThreadPoolExecutor

import pytest

from backend.common.errors import NotFound
from backend.database.db_connection import Database
from backend.database.init_db import apply_schema, create_admin
from backend.database.ledger import Ledger
from backend.gateway.server import create_app

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

pytestmark = pytest.mark.skipif(not TEST_DATABASE_URL, reason="TEST_DATABASE_URL not set")


@pytest.fixture
def db():
    database = Database(TEST_DATABASE_URL, maxconn=8).open()
    apply_schema(database)
    with database.transaction() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                TRUNCATE ukm_event_participants, ukm_events, ukm_reports,
                         ukm_members, ukm, users RESTART IDENTITY CASCADE;
                """
            )
    yield database
    database.close()


@pytest.fixture
def real_ledger(db):
    return Ledger(db)


@pytest.fixture
def live_client(real_ledger):
    app = create_app({"TESTING": True, "LOG_LEVEL": "WARNING"}, ledger=real_ledger)
    return app.test_client()


def count(db, sql, params=()):
    with db.transaction() as conn:
        with conn.cursor() as cur:
            cur.execute(sql, params)
            return cur.fetchone()[0]


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_membership_scenario(db, real_ledger, live_client):
    create_admin(real_ledger, "u@x.com", "admin-pass")
    admin_token = live_client.post("/login", json={"email": "u@x.com", "password": "admin-pass"}).get_json()["token"]

    # Register and log in as A
    r = live_client.post("/register", json={"email": "a@x.com", "password": "secret", "full_name": "A"})
    assert r.status_code == 201
    a_id = r.get_json()["user"]["user_id"]
    assert "password_hash" not in r.get_json()["user"]

    r = live_client.post("/login", json={"email": "a@x.com", "password": "secret"})
    assert r.status_code == 200
    assert r.get_json()["user"]["user_id"] == a_id
    token_a = r.get_json()["token"]

    # Same email again is a conflict and leaves the first account alone
    r = live_client.post("/register", json={"email": "a@x.com", "password": "other-pass"})
    assert r.status_code == 409
    assert live_client.post("/login", json={"email": "a@x.com", "password": "secret"}).status_code == 200

    # Admin creates the UKM and becomes its admin member
    r = live_client.post("/ukm", json={"name": "Chess Club"}, headers=bearer(admin_token))
    assert r.status_code == 201
    ukm_id = r.get_json()["ukm_id"]
    assert r.get_json()["membership"]["role"] == "admin"
    assert count(db, "SELECT COUNT(*) FROM ukm_members WHERE ukm_id = %s AND role = 'admin';", (ukm_id,)) == 1

    # A joins twice; one membership row
    assert live_client.post(f"/ukm/{ukm_id}/join", headers=bearer(token_a)).status_code == 201
    assert live_client.post(f"/ukm/{ukm_id}/join", headers=bearer(token_a)).status_code == 200
    assert count(db, "SELECT COUNT(*) FROM ukm_members WHERE user_id = %s AND ukm_id = %s;", (a_id, ukm_id)) == 1

    # A is only a member, so cannot create events
    r = live_client.post(f"/ukm/{ukm_id}/events", json={"name": "Meetup"}, headers=bearer(token_a))
    assert r.status_code == 403

    r = live_client.post(f"/ukm/{ukm_id}/events", json={"name": "Meetup"}, headers=bearer(admin_token))
    assert r.status_code == 201
    event_id = r.get_json()["event_id"]

    # Register twice; one registration row
    assert live_client.post(f"/ukm/events/{event_id}/register", headers=bearer(token_a)).status_code == 201
    assert live_client.post(f"/ukm/events/{event_id}/register", headers=bearer(token_a)).status_code == 200
    assert count(db, "SELECT COUNT(*) FROM ukm_event_participants WHERE event_id = %s;", (event_id,)) == 1

    assert live_client.delete(f"/ukm/events/{event_id}/unregister", headers=bearer(token_a)).status_code == 200
    assert live_client.delete(f"/ukm/events/{event_id}/unregister", headers=bearer(token_a)).status_code == 404

    # Profile reads never carry password data
    r = live_client.get("/me", headers=bearer(token_a))
    assert r.status_code == 200
    assert "password" not in r.get_data(as_text=True)
    assert "password" not in live_client.get("/users", headers=bearer(admin_token)).get_data(as_text=True)

    # Deleting the UKM removes its events and memberships
    assert live_client.delete(f"/ukm/{ukm_id}", headers=bearer(admin_token)).status_code == 200
    assert count(db, "SELECT COUNT(*) FROM ukm_events WHERE ukm_id = %s;", (ukm_id,)) == 0
    assert count(db, "SELECT COUNT(*) FROM ukm_members WHERE ukm_id = %s;", (ukm_id,)) == 0


def test_concurrent_joins_create_one_membership(db, real_ledger):
    admin = create_admin(real_ledger, "u@x.com", "admin-pass")
    user = real_ledger.create_user("a@x.com", "secret")
    ukm = real_ledger.create_organization("Chess Club", {}, admin["user_id"])

    with ThreadPoolExecutor(max_workers=6) as pool:
        results = list(pool.map(lambda _: real_ledger.join_organization(user["user_id"], ukm["ukm_id"]), range(12)))

    assert sum(1 for _, created in results if created) == 1
    assert count(
        db,
        "SELECT COUNT(*) FROM ukm_members WHERE user_id = %s AND ukm_id = %s;",
        (user["user_id"], ukm["ukm_id"]),
    ) == 1


def test_concurrent_registrations_create_one_row(db, real_ledger):
    admin = create_admin(real_ledger, "u@x.com", "admin-pass")
    user = real_ledger.create_user("a@x.com", "secret")
    ukm = real_ledger.create_organization("Chess Club", {}, admin["user_id"])
    event = real_ledger.create_event(ukm["ukm_id"], {"name": "Meetup"}, created_by=admin["user_id"])

    with ThreadPoolExecutor(max_workers=6) as pool:
        results = list(pool.map(lambda _: real_ledger.register_for_event(user["user_id"], event["event_id"]), range(12)))

    assert sum(1 for _, created in results if created) == 1
    assert count(db, "SELECT COUNT(*) FROM ukm_event_participants WHERE event_id = %s;", (event["event_id"],)) == 1


def test_create_organization_is_atomic(db, real_ledger):
    # Creator does not exist: neither the UKM nor a membership may remain
    with pytest.raises(NotFound):
        real_ledger.create_organization("Ghost Club", {}, 12345)

    assert count(db, "SELECT COUNT(*) FROM ukm;") == 0
    assert count(db, "SELECT COUNT(*) FROM ukm_members;") == 0
