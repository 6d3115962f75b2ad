import os
import sys

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from moveit.exceptions import AccessDenied, AlreadyReceived, NotFound, ValidationError
from moveit.permissions import Role
from moveit.services import collections as collection_service
from moveit.services.ledger import Actor
from moveit.services.notifications import NotificationService


CONTROLLER = Actor("ivy", "Ivy Stock", Role.INVENTORY_CONTROLLER)
TEAM_LEADER = Actor("tina", "Tina Leader", Role.TEAM_LEADER)


@pytest.fixture
def state():
    return {
        "users": {
            "admin": {"username": "admin", "name": "Admin User", "role": "admin"},
            "ivy": {"username": "ivy", "name": "Ivy Stock", "role": "inventoryController"},
            "ian": {"username": "ian", "name": "Ian Stock", "role": "inventorycontroller"},
            "tina": {"username": "tina", "name": "Tina Leader", "role": "teamLeader"},
        },
        "materials": [
            {"id": 1, "name": "Medium Box", "quantityNew": 0, "quantityOld": 0},
            {"id": 5, "name": "Blanket", "quantityNew": 2, "quantityOld": 1},
        ],
        "transactions": [],
        "pendingCollections": [],
        "notifications": [],
    }


@pytest.fixture
def job():
    return {
        "id": 42,
        "clientName": "Smith family",
        "teamLeader": "tina",
        "packingMaterials": [{"id": 1, "name": "Medium Box", "quantity": 3}],
    }


def test_completion_defaults_to_assigned_materials(state, job):
    collection = collection_service.create_from_job_completion(state, job, True, [])

    assert collection["status"] == "pending"
    assert collection["projectId"] == 42
    assert collection["projectName"] == "Smith family"
    assert collection["createdBy"] == "tina"
    assert collection["materials"] == [{"id": 1, "name": "Medium Box", "quantity": 3}]
    assert state["pendingCollections"] == [collection]


def test_completion_uses_reported_list_when_given(state, job):
    reported = [{"id": 5, "name": "Blanket", "quantity": 6}]

    collection = collection_service.create_from_job_completion(state, job, True, reported)

    assert collection["materials"] == reported


def test_completion_notifies_every_inventory_controller(state, job):
    collection_service.create_from_job_completion(state, job, True, [])

    notified = sorted(entry["recipient"] for entry in state["notifications"])
    assert notified == ["ian", "ivy"]
    assert {entry["type"] for entry in state["notifications"]} == {"inventory-collection"}


def test_nothing_to_collect_creates_no_record(state, job):
    assert collection_service.create_from_job_completion(state, job, False, []) is None

    job["packingMaterials"] = []
    assert collection_service.create_from_job_completion(state, job, True, []) is None

    assert state["pendingCollections"] == []
    assert state["notifications"] == []


def test_notification_failure_does_not_block_collection(state, job, monkeypatch):
    def boom(self, *args, **kwargs):
        raise RuntimeError("mail relay down")

    monkeypatch.setattr(NotificationService, "notify_role", boom)

    collection = collection_service.create_from_job_completion(state, job, True, [])

    assert collection is not None
    assert state["pendingCollections"] == [collection]


def test_receive_credits_old_pool_once(state, job):
    collection = collection_service.create_from_job_completion(state, job, True, [])

    received, materials = collection_service.receive(state, collection["id"], CONTROLLER)

    assert received["status"] == "received"
    assert received["receivedBy"] == "ivy"
    assert received["receivedAt"]
    box = materials[0]
    assert (box["quantityNew"], box["quantityOld"], box["quantity"]) == (0, 3, 3)

    entry = state["transactions"][-1]
    assert entry["type"] == "collection"
    assert entry["quantity"] == 3
    assert entry["materialType"] == "old"
    assert entry["projectId"] == 42

    with pytest.raises(AlreadyReceived):
        collection_service.receive(state, collection["id"], CONTROLLER)

    assert box["quantity"] == 3
    assert len(state["transactions"]) == 1


def test_receive_skips_unknown_materials(state, job):
    reported = [{"id": 77, "name": "Mystery", "quantity": 1}, {"id": 5, "quantity": 2}]
    collection = collection_service.create_from_job_completion(state, job, True, reported)

    received, materials = collection_service.receive(state, collection["id"], CONTROLLER)

    assert received["status"] == "received"
    assert materials[1]["quantityOld"] == 3
    assert len(state["transactions"]) == 1


def test_receive_requires_stock_editor(state, job):
    collection = collection_service.create_from_job_completion(state, job, True, [])

    with pytest.raises(AccessDenied):
        collection_service.receive(state, collection["id"], TEAM_LEADER)

    assert collection["status"] == "pending"
    assert state["materials"][0]["quantity"] == 0


def test_receive_unknown_collection(state):
    with pytest.raises(NotFound):
        collection_service.receive(state, 12345, CONTROLLER)


def test_list_collections_by_status(state, job):
    first = collection_service.create_from_job_completion(state, job, True, [])
    collection_service.create_from_job_completion(state, job, True, [])
    collection_service.receive(state, first["id"], CONTROLLER)

    pending = collection_service.list_collections(state, CONTROLLER, status="pending")
    received = collection_service.list_collections(state, CONTROLLER, status="received")

    assert len(pending) == 1
    assert [entry["id"] for entry in received] == [first["id"]]
    assert len(collection_service.list_collections(state, CONTROLLER)) == 2

    with pytest.raises(ValidationError):
        collection_service.list_collections(state, CONTROLLER, status="lost")
