import os
import sys

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from moveit import create_app
from moveit.store import current_store


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
    for username, role, name in (
        ("tina", "teamLeader", "Tina Leader"),
        ("sam", "supervisor", "Sam Supervisor"),
        ("ivy", "inventoryController", "Ivy Stock"),
    ):
        response = client.post(
            "/users?username=admin",
            json={"username": username, "password": "pw123", "role": role, "name": name},
        )
        assert response.status_code == 201
    response = client.put(
        "/inventory/materials?username=admin",
        json=[
            {"id": 1, "name": "Medium Box", "quantityNew": 10, "quantityOld": 0},
            {"id": 5, "name": "Blanket", "quantityNew": 4, "quantityOld": 2},
        ],
    )
    assert response.status_code == 200
    return client


def material(client, material_id):
    materials = client.get("/inventory/materials").get_json()
    return next(entry for entry in materials if entry["id"] == material_id)


def create_job(client, username="tina", **fields):
    payload = {
        "username": username,
        "clientName": "Smith family",
        "teamLeader": "tina",
        "fromAddress": "1 Elm St",
        "toAddress": "9 Oak Ave",
    }
    payload.update(fields)
    return client.post("/jobs", json=payload)


def test_create_job_assigns_packing_materials(client):
    response = create_job(client, packingMaterials=[{"id": 1, "quantity": 4}])

    assert response.status_code == 201
    job = response.get_json()
    assert job["status"] == "assigned"
    assert job["createdBy"] == "tina"
    assert "username" not in job
    assert job["packingMaterials"] == [
        {
            "id": 1,
            "name": "Medium Box",
            "quantity": 4,
            "materialType": "new",
            "deducted": {"new": 4, "old": 0},
        }
    ]
    assert material(client, 1)["quantityNew"] == 6

    transactions = client.get(f"/inventory/transactions?username=ivy&projectId={job['id']}")
    assert [entry["quantity"] for entry in transactions.get_json()] == [-4]


def test_create_job_notifies_team_leader_and_supervisors(client):
    job = create_job(client).get_json()

    tina = client.get("/notifications?username=tina").get_json()
    sam = client.get("/notifications?username=sam").get_json()

    assert [entry["type"] for entry in tina] == ["job-assigned"]
    assert str(job["id"]) in tina[0]["title"]
    assert [entry["type"] for entry in sam] == ["job-created"]


def test_create_job_refused_when_stock_is_short(client):
    response = create_job(client, packingMaterials=[{"id": 1, "quantity": 50}])

    assert response.status_code == 400
    assert response.get_json()["code"] == "INSUFFICIENT_STOCK"
    assert client.get("/jobs").get_json() == []
    assert material(client, 1)["quantityNew"] == 10


def test_supervisor_can_overdraw_for_a_job(client):
    response = create_job(client, username="sam", packingMaterials=[{"id": 5, "quantity": 9}])

    assert response.status_code == 201
    blanket = material(client, 5)
    assert blanket["quantity"] == 0

    transactions = client.get("/inventory/transactions?username=admin&materialId=5").get_json()
    assert transactions[0]["negativeStockOverride"] is True
    assert transactions[0]["shortfall"] == 3


def test_create_job_rejects_unknown_status(client):
    response = create_job(client, status="teleported")

    assert response.status_code == 400
    assert response.get_json()["field"] == "status"


def test_update_job_reassigns_materials(client):
    job = create_job(client, packingMaterials=[{"id": 1, "quantity": 4}]).get_json()

    response = client.put(
        f"/jobs/{job['id']}",
        json={"username": "tina", "packingMaterials": [{"id": 1, "quantity": 6}], "notes": "More boxes"},
    )

    assert response.status_code == 200
    updated = response.get_json()
    assert updated["notes"] == "More boxes"
    assert updated["packingMaterials"][0]["quantity"] == 6
    assert material(client, 1)["quantityNew"] == 4

    types = [
        entry["type"]
        for entry in client.get(
            f"/inventory/transactions?username=ivy&projectId={job['id']}"
        ).get_json()
    ]
    assert types == ["assignment", "return", "assignment"]


def test_failed_update_leaves_job_and_stock_alone(client):
    job = create_job(client, packingMaterials=[{"id": 1, "quantity": 4}]).get_json()

    response = client.put(
        f"/jobs/{job['id']}",
        json={"username": "tina", "packingMaterials": [{"id": 1, "quantity": 100}]},
    )

    assert response.status_code == 400
    assert material(client, 1)["quantityNew"] == 6
    stored = client.get(f"/jobs/{job['id']}").get_json()
    assert stored["packingMaterials"][0]["quantity"] == 4
    transactions = client.get("/inventory/transactions?username=ivy").get_json()
    assert len(transactions) == 1


def test_status_updates_are_recorded(client):
    job = create_job(client).get_json()

    response = client.post(f"/jobs/{job['id']}/status", json={"status": "arrived", "notes": "On site"})

    assert response.status_code == 200
    history = response.get_json()["history"]
    assert [entry["status"] for entry in history] == ["assigned", "arrived"]
    assert history[-1]["notes"] == "On site"

    bad = client.post(f"/jobs/{job['id']}/status", json={"status": "lost"})
    assert bad.status_code == 400


def test_complete_job_opens_collection_and_receive_restocks(client):
    job = create_job(client, packingMaterials=[{"id": 1, "quantity": 6}]).get_json()

    response = client.post(
        f"/jobs/{job['id']}/complete",
        json={"rating": 5, "signature": "data:image/png;base64,xyz", "materialsCollected": "yes"},
    )

    assert response.status_code == 200
    completed = response.get_json()
    assert completed["status"] == "waiting-approval"
    assert completed["completionData"]["materialsCollected"] is True
    collection = completed["pendingCollection"]
    assert collection["status"] == "pending"
    assert collection["materials"] == [{"id": 1, "name": "Medium Box", "quantity": 6}]

    ivy = client.get("/notifications?username=ivy").get_json()
    assert [entry["type"] for entry in ivy] == ["inventory-collection"]

    pending = client.get("/inventory/pending-collections?username=ivy&status=pending").get_json()
    assert [entry["id"] for entry in pending] == [collection["id"]]

    received = client.post(
        f"/inventory/collections/{collection['id']}/receive", json={"username": "ivy"}
    )
    assert received.status_code == 200
    assert received.get_json()["collection"]["status"] == "received"
    box = material(client, 1)
    assert (box["quantityNew"], box["quantityOld"], box["quantity"]) == (4, 6, 10)

    again = client.post(
        f"/inventory/collections/{collection['id']}/receive", json={"username": "ivy"}
    )
    assert again.status_code == 409
    assert again.get_json()["code"] == "ALREADY_RECEIVED"
    assert material(client, 1)["quantity"] == 10


def test_complete_without_collection(client):
    job = create_job(client, packingMaterials=[{"id": 1, "quantity": 2}]).get_json()

    response = client.post(f"/jobs/{job['id']}/complete", json={"materialsCollected": False})

    assert response.get_json()["pendingCollection"] is None
    pending = client.get("/inventory/pending-collections?username=admin").get_json()
    assert pending == []


def test_receive_denied_for_team_leader(client):
    job = create_job(client, packingMaterials=[{"id": 1, "quantity": 2}]).get_json()
    completed = client.post(
        f"/jobs/{job['id']}/complete", json={"materialsCollected": True}
    ).get_json()
    collection_id = completed["pendingCollection"]["id"]

    response = client.post(
        f"/inventory/collections/{collection_id}/receive", json={"username": "tina"}
    )

    assert response.status_code == 403
    assert material(client, 1)["quantityOld"] == 0


def test_approve_and_delete_are_role_gated(client):
    job = create_job(client).get_json()

    assert client.post(f"/jobs/{job['id']}/approve", json={"username": "tina"}).status_code == 403
    approved = client.post(f"/jobs/{job['id']}/approve", json={"username": "sam"})
    assert approved.status_code == 200
    assert approved.get_json()["status"] == "completed"
    assert approved.get_json()["approvedBy"] == "sam"

    assert client.delete(f"/jobs/{job['id']}?username=sam").status_code == 403
    assert client.delete(f"/jobs/{job['id']}?username=admin").status_code == 204
    assert client.get(f"/jobs/{job['id']}").status_code == 404


def test_list_jobs_by_status(client):
    first = create_job(client).get_json()
    create_job(client)
    client.post(f"/jobs/{first['id']}/status", json={"status": "delayed"})

    delayed = client.get("/jobs?status=delayed").get_json()

    assert [job["id"] for job in delayed] == [first["id"]]
    assert len(client.get("/jobs").get_json()) == 2


def test_clearing_an_overdrawn_job_returns_only_what_was_taken(client):
    job = create_job(client, username="sam", packingMaterials=[{"id": 5, "quantity": 9}]).get_json()
    assert job["packingMaterials"][0]["quantity"] == 6
    assert job["packingMaterials"][0]["requestedQuantity"] == 9

    response = client.put(f"/jobs/{job['id']}", json={"username": "sam", "packingMaterials": []})

    assert response.status_code == 200
    assert response.get_json()["packingMaterials"] == []
    blanket = material(client, 5)
    assert (blanket["quantityNew"], blanket["quantityOld"], blanket["quantity"]) == (4, 2, 6)


def test_collection_defaults_to_quantities_actually_taken(client):
    job = create_job(client, username="sam", packingMaterials=[{"id": 5, "quantity": 9}]).get_json()

    completed = client.post(
        f"/jobs/{job['id']}/complete", json={"materialsCollected": True}
    ).get_json()

    assert completed["pendingCollection"]["materials"] == [
        {"id": 5, "name": "Blanket", "quantity": 6}
    ]


def test_create_job_rejects_unknown_pool(client):
    response = create_job(
        client, packingMaterials=[{"id": 1, "quantity": 1, "materialType": "used"}]
    )

    assert response.status_code == 400
    assert response.get_json()["field"] == "materialType"
    assert material(client, 1)["quantity"] == 10


def test_approve_stamps_completion_and_counts_for_team_leader(client, app):
    job = create_job(client).get_json()

    approved = client.post(f"/jobs/{job['id']}/approve", json={"username": "sam"}).get_json()

    assert approved["completedDate"] == approved["approvedAt"]
    with app.app_context():
        state = current_store().read()
    assert state["users"]["tina"]["jobsCompleted"] == 1


def test_bills_are_attached_and_listed(client):
    job = create_job(client).get_json()

    response = client.post(
        f"/jobs/{job['id']}/bills",
        json={
            "username": "tina",
            "description": "Fuel",
            "amount": "42.50",
            "fileUrl": "/files/abc_receipt.jpg",
        },
    )

    assert response.status_code == 201
    bill = response.get_json()["bill"]
    assert bill["amount"] == 42.5
    assert bill["attachedBy"] == "tina"
    assert bill["notes"] == ""

    bills = client.get(f"/jobs/{job['id']}/bills").get_json()
    assert [entry["id"] for entry in bills] == [bill["id"]]


@pytest.mark.parametrize(
    "payload",
    [
        {"amount": 10, "fileUrl": "/files/x.jpg"},
        {"description": "Fuel", "fileUrl": "/files/x.jpg"},
        {"description": "Fuel", "amount": 10},
        {"description": "Fuel", "amount": "ten", "fileUrl": "/files/x.jpg"},
        {"description": "Fuel", "amount": 0, "fileUrl": "/files/x.jpg"},
    ],
)
def test_bill_requires_description_amount_and_file(client, payload):
    job = create_job(client).get_json()

    response = client.post(f"/jobs/{job['id']}/bills", json=payload)

    assert response.status_code == 400
    assert client.get(f"/jobs/{job['id']}/bills").get_json() == []


def test_bills_for_unknown_job(client):
    assert client.get("/jobs/404/bills").status_code == 404
    response = client.post(
        "/jobs/404/bills",
        json={"description": "Fuel", "amount": 5, "fileUrl": "/files/x.jpg"},
    )
    assert response.status_code == 404
