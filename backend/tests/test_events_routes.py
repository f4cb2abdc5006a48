from backend.common.errors import NotFound, ValidationError
from backend.common.roles import OrgRole
from backend.tests.helpers import auth_header

EVENT = {"event_id": 7, "ukm_id": 10, "name": "Meetup", "event_date": "2025-05-01T10:00:00+00:00"}


def test_list_events(client, ledger):
    ledger.list_events.return_value = [EVENT]

    response = client.get("/ukm/10/events")

    assert response.status_code == 200
    assert response.get_json()[0]["name"] == "Meetup"
    ledger.list_events.assert_called_once_with(10)


def test_get_event_detail(client, ledger):
    ledger.get_event.return_value = {**EVENT, "ukm_name": "Chess Club"}

    response = client.get("/ukm/events/7")

    assert response.status_code == 200
    assert response.get_json()["ukm_name"] == "Chess Club"


def test_get_missing_event(client, ledger):
    ledger.get_event.side_effect = NotFound("Event not found")

    response = client.get("/ukm/events/7")

    assert response.status_code == 404


# --- create: who may do it ---
def test_create_event_as_plain_member_forbidden(client, ledger):
    ledger.get_membership_role.return_value = OrgRole.MEMBER

    response = client.post("/ukm/10/events", json={"name": "Meetup"}, headers=auth_header(2, "user"))

    assert response.status_code == 403
    ledger.create_event.assert_not_called()


def test_create_event_as_non_member_forbidden(client, ledger):
    ledger.get_membership_role.return_value = None

    response = client.post("/ukm/10/events", json={"name": "Meetup"}, headers=auth_header(2, "user"))

    assert response.status_code == 403
    ledger.create_event.assert_not_called()


def test_create_event_as_ukm_admin(client, ledger):
    ledger.get_membership_role.return_value = OrgRole.ADMIN
    ledger.create_event.return_value = EVENT

    payload = {"name": "Meetup", "event_date": "2025-05-01T10:00:00Z", "location": "Hall A"}
    response = client.post("/ukm/10/events", json=payload, headers=auth_header(2, "user"))

    assert response.status_code == 201
    assert response.get_json()["event_id"] == 7
    ledger.create_event.assert_called_once_with(10, payload, created_by=2)


def test_create_event_as_global_admin_without_membership(client, ledger, admin_headers):
    ledger.create_event.return_value = EVENT

    response = client.post("/ukm/10/events", json={"name": "Meetup"}, headers=admin_headers)

    assert response.status_code == 201
    ledger.get_membership_role.assert_not_called()


def test_create_event_unauthenticated(client, ledger):
    response = client.post("/ukm/10/events", json={"name": "Meetup"})
    assert response.status_code == 401


def test_create_event_invalid_input(client, ledger, admin_headers):
    ledger.create_event.side_effect = ValidationError("name is required")

    response = client.post("/ukm/10/events", json={"description": "no name"}, headers=admin_headers)

    assert response.status_code == 400
    assert response.get_json()["error"] == "name is required"


def test_create_event_for_missing_ukm_as_admin(client, ledger, admin_headers):
    ledger.create_event.side_effect = NotFound("UKM not found")

    response = client.post("/ukm/99/events", json={"name": "Meetup"}, headers=admin_headers)

    assert response.status_code == 404


# --- update / delete ---
def test_update_event(client, ledger):
    ledger.get_event_ukm_id.return_value = 10
    ledger.get_membership_role.return_value = OrgRole.ADMIN
    ledger.update_event.return_value = {**EVENT, "name": "Updated"}

    response = client.put("/ukm/events/7", json={"name": "Updated"}, headers=auth_header(2, "user"))

    assert response.status_code == 200
    assert response.get_json()["name"] == "Updated"
    ledger.get_membership_role.assert_called_once_with(2, 10)


def test_update_event_forbidden_for_member(client, ledger):
    ledger.get_event_ukm_id.return_value = 10
    ledger.get_membership_role.return_value = OrgRole.MEMBER

    response = client.put("/ukm/events/7", json={"name": "Updated"}, headers=auth_header(2, "user"))

    assert response.status_code == 403
    ledger.update_event.assert_not_called()


def test_update_missing_event(client, ledger, admin_headers):
    ledger.get_event_ukm_id.side_effect = NotFound("Event not found")

    response = client.put("/ukm/events/7", json={"name": "Updated"}, headers=admin_headers)

    assert response.status_code == 404


def test_update_event_empty_body(client, ledger, admin_headers):
    ledger.get_event_ukm_id.return_value = 10

    response = client.put("/ukm/events/7", json={}, headers=admin_headers)

    assert response.status_code == 400


def test_delete_event(client, ledger, admin_headers):
    ledger.get_event_ukm_id.return_value = 10

    response = client.delete("/ukm/events/7", headers=admin_headers)

    assert response.status_code == 200
    assert response.get_json()["message"] == "Event deleted"
    ledger.delete_event.assert_called_once_with(7)


# --- registration ---
def test_register_for_event(client, ledger, user_headers):
    registration = {"participant_id": 3, "user_id": 2, "event_id": 7}
    ledger.register_for_event.side_effect = [(registration, True), (registration, False)]

    first = client.post("/ukm/events/7/register", headers=user_headers)
    second = client.post("/ukm/events/7/register", headers=user_headers)

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.get_json()["participant_id"] == 3
    assert second.get_json()["message"] == "Already registered"


def test_register_for_missing_event(client, ledger, user_headers):
    ledger.register_for_event.side_effect = NotFound("Event not found")

    response = client.post("/ukm/events/7/register", headers=user_headers)

    assert response.status_code == 404


def test_unregister(client, ledger, user_headers):
    ledger.unregister_from_event.side_effect = [None, NotFound("Not registered to event")]

    first = client.delete("/ukm/events/7/unregister", headers=user_headers)
    second = client.delete("/ukm/events/7/unregister", headers=user_headers)

    assert first.status_code == 200
    assert second.status_code == 404
    assert second.get_json()["error"] == "Not registered to event"


def test_participants_restricted_to_ukm_admins(client, ledger):
    ledger.get_event_ukm_id.return_value = 10
    ledger.get_membership_role.return_value = OrgRole.MEMBER

    response = client.get("/ukm/events/7/participants", headers=auth_header(2, "user"))

    assert response.status_code == 403
    ledger.list_participants.assert_not_called()


def test_participants_as_ukm_admin(client, ledger):
    ledger.get_event_ukm_id.return_value = 10
    ledger.get_membership_role.return_value = OrgRole.ADMIN
    ledger.list_participants.return_value = [
        {"participant_id": 1, "user_id": 3, "registered_at": "2025-01-01T09:00:00"},
        {"participant_id": 2, "user_id": 4, "registered_at": "2025-01-01T10:00:00"},
    ]

    response = client.get("/ukm/events/7/participants", headers=auth_header(2, "user"))

    assert response.status_code == 200
    assert [p["user_id"] for p in response.get_json()] == [3, 4]
