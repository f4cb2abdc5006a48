from backend.common.errors import Conflict, NotFound


def test_list_ukm_is_public(client, ledger):
    ledger.list_organizations.return_value = [{"ukm_id": 1, "name": "Chess Club", "member_count": 3}]

    response = client.get("/ukm")

    assert response.status_code == 200
    assert response.get_json()[0]["name"] == "Chess Club"


def test_create_ukm_requires_global_admin(client, ledger, user_headers):
    response = client.post("/ukm", json={"name": "Chess Club"}, headers=user_headers)

    assert response.status_code == 403
    ledger.create_organization.assert_not_called()


def test_create_ukm_unauthenticated(client, ledger):
    response = client.post("/ukm", json={"name": "Chess Club"})
    assert response.status_code == 401


def test_create_ukm_as_admin(client, ledger, admin_headers):
    ledger.create_organization.return_value = {
        "ukm_id": 10,
        "name": "Chess Club",
        "membership": {"user_id": 1, "ukm_id": 10, "role": "admin"},
    }

    response = client.post(
        "/ukm",
        json={"name": "Chess Club", "description": "Play chess", "unknown": "x"},
        headers=admin_headers,
    )

    assert response.status_code == 201
    assert response.get_json()["membership"]["role"] == "admin"
    ledger.create_organization.assert_called_once_with("Chess Club", {"description": "Play chess"}, 1)


def test_create_ukm_missing_name(client, ledger, admin_headers):
    response = client.post("/ukm", json={}, headers=admin_headers)
    assert response.status_code == 400


def test_create_ukm_duplicate_name(client, ledger, admin_headers):
    ledger.create_organization.side_effect = Conflict("UKM name already exists")

    response = client.post("/ukm", json={"name": "Chess Club"}, headers=admin_headers)

    assert response.status_code == 409


def test_get_ukm_detail(client, ledger):
    ledger.get_organization.return_value = {"ukm_id": 10, "name": "Chess Club", "members": [], "events": []}

    response = client.get("/ukm/10")

    assert response.status_code == 200
    assert response.get_json()["events"] == []


def test_get_missing_ukm(client, ledger):
    ledger.get_organization.side_effect = NotFound("UKM not found")

    response = client.get("/ukm/99")

    assert response.status_code == 404
    assert response.get_json()["error"] == "UKM not found"


def test_delete_ukm(client, ledger, admin_headers, user_headers):
    response = client.delete("/ukm/10", headers=user_headers)
    assert response.status_code == 403

    response = client.delete("/ukm/10", headers=admin_headers)
    assert response.status_code == 200
    ledger.delete_organization.assert_called_once_with(10)


def test_join_ukm_first_time(client, ledger, user_headers):
    ledger.join_organization.return_value = ({"member_id": 5, "user_id": 2, "ukm_id": 10, "role": "member"}, True)

    response = client.post("/ukm/10/join", headers=user_headers)

    assert response.status_code == 201
    assert response.get_json()["role"] == "member"
    ledger.join_organization.assert_called_once_with(2, 10)


def test_join_ukm_again_is_not_an_error(client, ledger, user_headers):
    ledger.join_organization.return_value = ({"member_id": 5, "user_id": 2, "ukm_id": 10, "role": "member"}, False)

    response = client.post("/ukm/10/join", headers=user_headers)

    assert response.status_code == 200
    data = response.get_json()
    assert data["member_id"] == 5
    assert data["message"] == "Already a member"


def test_join_requires_login(client, ledger):
    response = client.post("/ukm/10/join")

    assert response.status_code == 401
    ledger.join_organization.assert_not_called()


def test_leave_ukm_is_idempotent(client, ledger, user_headers):
    ledger.leave_organization.side_effect = [True, False]

    first = client.delete("/ukm/10/leave", headers=user_headers)
    second = client.delete("/ukm/10/leave", headers=user_headers)

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.get_json()["message"] == "Not a member"
