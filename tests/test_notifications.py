import os
import sys

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from moveit import create_app


@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "STORE_BACKEND": "memory",
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "LOG_DIR": str(tmp_path / "logs"),
        }
    )
    yield app


@pytest.fixture
def client(app):
    client = app.test_client()
    for username, role in (
        ("tina", "teamLeader"),
        ("sam", "supervisor"),
        ("stan", "staff"),
        ("ivy", "inventoryController"),
    ):
        client.post(
            "/users?username=admin",
            json={"username": username, "password": "pw", "role": role, "name": username.title()},
        )
    return client


def test_send_single_notification(client):
    response = client.post(
        "/notifications",
        json={"recipient": "tina", "title": "Heads up", "message": "Truck is late", "type": "alert"},
    )

    assert response.status_code == 201
    notification = response.get_json()
    assert notification["recipientName"] == "Tina"
    assert notification["readBy"] == []

    inbox = client.get("/notifications?username=tina").get_json()
    assert [entry["title"] for entry in inbox] == ["Heads up"]


def test_broadcast_skips_admins_and_inventory_controllers(client):
    response = client.post(
        "/notifications",
        json={"recipient": "all", "title": "Safety", "message": "Lift with your knees"},
    )

    assert response.status_code == 200
    assert response.get_json()["count"] == 3
    recipients = sorted(entry["recipient"] for entry in client.get("/notifications").get_json())
    assert recipients == ["sam", "stan", "tina"]


def test_notification_requires_fields(client):
    response = client.post("/notifications", json={"recipient": "tina", "title": "Missing"})

    assert response.status_code == 400
    assert response.get_json()["code"] == "VALIDATION_ERROR"


def test_mark_read(client):
    notification = client.post(
        "/notifications",
        json={"recipient": "tina", "title": "Hi", "message": "Read me"},
    ).get_json()

    response = client.post(f"/notifications/{notification['id']}/read", json={"username": "tina"})
    client.post(f"/notifications/{notification['id']}/read", json={"username": "tina"})

    assert response.status_code == 200
    inbox = client.get("/notifications?username=tina").get_json()
    assert inbox[0]["readBy"] == ["tina"]

    assert client.post("/notifications/1/read", json={"username": "tina"}).status_code == 404
    assert client.post(f"/notifications/{notification['id']}/read", json={}).status_code == 400
