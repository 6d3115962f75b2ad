"""Materials left at completed jobs, waiting to be brought back to the shelf.

A collection is created ``pending`` when a team leader completes a job and
reports materials to collect. An inventory controller later receives it, which
credits every line into the old pool. ``received`` is terminal.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from moveit.exceptions import AlreadyReceived, NotFound, ValidationError
from moveit.permissions import Role
from moveit.services.ledger import Actor, StockLedger, parse_quantity
from moveit.services.notifications import NotificationService, send_quietly
from moveit.services.transaction_log import TYPE_COLLECTION
from moveit.services.users import ensure_allowed
from moveit.utils.clock import new_id, utcnow_iso

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_RECEIVED = "received"
COLLECTION_STATUSES = (STATUS_PENDING, STATUS_RECEIVED)


def _collections(state: dict[str, Any]) -> list[dict[str, Any]]:
    return state.setdefault("pendingCollections", [])


def project_name(job: dict[str, Any]) -> str:
    return job.get("projectName") or job.get("clientName") or f"Project #{job.get('id')}"


def _default_lines(job: dict[str, Any]) -> list[dict[str, Any]]:
    """The job's packing materials, at the quantities actually taken from stock."""

    lines = []
    for material in job.get("packingMaterials") or []:
        quantity = parse_quantity(material.get("quantity"))
        if quantity == 0:
            continue
        lines.append(
            {
                "id": material.get("id"),
                "name": material.get("name") or "Unknown Material",
                "quantity": quantity,
            }
        )
    return lines


def create_from_job_completion(
    state: dict[str, Any],
    job: dict[str, Any],
    materials_collected: bool,
    collected_list: Sequence[dict[str, Any]] | None = None,
) -> dict[str, Any] | None:
    """Open a pending collection for a completed job, if there is anything to fetch.

    An explicit, non-empty ``collected_list`` wins; otherwise the materials
    assigned to the job are used. Every inventory controller is notified.
    """

    if not materials_collected:
        return None

    lines = list(collected_list or []) or _default_lines(job)
    if not lines:
        return None

    job_id = job.get("id")
    collection = {
        "id": new_id(),
        "projectId": job_id,
        "projectName": project_name(job),
        "materials": lines,
        "status": STATUS_PENDING,
        "createdAt": utcnow_iso(),
        "createdBy": job.get("teamLeader") or "system",
    }
    _collections(state).append(collection)

    notifications = NotificationService(state)
    send_quietly(
        notifications.notify_role,
        Role.INVENTORY_CONTROLLER,
        f"Materials to Collect: Project #{job_id}",
        f"Project #{job_id} completed. {len(lines)} material(s) need to be collected.",
        type="inventory-collection",
    )
    logger.info("Pending collection created for project #%s: %s material(s)", job_id, len(lines))
    return collection


def find_collection(state: dict[str, Any], collection_id: Any) -> dict[str, Any]:
    for collection in _collections(state):
        if str(collection.get("id")) == str(collection_id):
            return collection
    raise NotFound("Collection", collection_id)


def receive(
    state: dict[str, Any], collection_id: Any, actor: Actor
) -> tuple[dict[str, Any], list[dict[str, Any]]]:
    ensure_allowed("inventory.collections.receive", actor)

    collection = find_collection(state, collection_id)
    if collection.get("status") == STATUS_RECEIVED:
        raise AlreadyReceived(collection.get("id"))

    ledger = StockLedger.from_state(state)
    with ledger.savepoint():
        for line in collection.get("materials") or []:
            material_id = line.get("id")
            if ledger.find(material_id) is None:
                logger.warning(
                    "Collection %s lists unknown material %s; skipped",
                    collection.get("id"),
                    material_id,
                )
                continue
            ledger.credit(
                material_id,
                line.get("quantity"),
                actor,
                reason=TYPE_COLLECTION,
                project_id=collection.get("projectId"),
            )

    collection["status"] = STATUS_RECEIVED
    collection["receivedBy"] = actor.username
    collection["receivedByName"] = actor.name
    collection["receivedAt"] = utcnow_iso()
    logger.info("Collection %s received by %s", collection.get("id"), actor.username)
    return collection, ledger.materials


def list_collections(
    state: dict[str, Any], actor: Actor, status: str | None = None
) -> list[dict[str, Any]]:
    ensure_allowed("inventory.collections", actor)
    if status is not None and status not in COLLECTION_STATUSES:
        raise ValidationError(
            "status must be one of " + ", ".join(COLLECTION_STATUSES), field="status"
        )
    return [
        collection
        for collection in _collections(state)
        if status is None or collection.get("status") == status
    ]
