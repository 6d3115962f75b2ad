"""Moving jobs (called projects in the field apps) and their inventory hooks."""

from __future__ import annotations

import logging
from typing import Any

from moveit.exceptions import NotFound, ValidationError
from moveit.permissions import Role
from moveit.schemas import BillRequest, JobCompletion, MaterialLine, parse_material_lines
from moveit.services import collections as collection_service
from moveit.services import inventory as inventory_service
from moveit.services import users as user_service
from moveit.services.ledger import Actor
from moveit.services.notifications import NotificationService, send_quietly
from moveit.services.users import ensure_allowed
from moveit.utils.clock import new_id, utcnow_iso

logger = logging.getLogger(__name__)

JOB_STATUSES = (
    "assigned",
    "arrived",
    "packing-start",
    "first-location-completed",
    "arrived-second-location",
    "unpacking-start",
    "waiting-approval",
    "completed",
    "delayed",
)
ACTIVE_STATUSES = frozenset(
    {
        "assigned",
        "arrived",
        "packing-start",
        "first-location-completed",
        "arrived-second-location",
        "unpacking-start",
    }
)

# Request-only keys that never belong on the stored job.
_TRANSIENT_FIELDS = ("username",)


def _jobs(state: dict[str, Any]) -> list[dict[str, Any]]:
    return state.setdefault("jobs", [])


def get_job(state: dict[str, Any], job_id: Any) -> dict[str, Any]:
    for job in _jobs(state):
        if str(job.get("id")) == str(job_id):
            return job
    raise NotFound("Job", job_id)


def list_jobs(state: dict[str, Any], status: str | None = None) -> list[dict[str, Any]]:
    return [job for job in _jobs(state) if status is None or job.get("status") == status]


def _packing_lines(value: Any) -> list[MaterialLine]:
    if value is None:
        return []
    return parse_material_lines(value, field_name="packingMaterials")


def _history_entry(status: str, **extra: Any) -> dict[str, Any]:
    entry = {"status": status, "at": utcnow_iso()}
    entry.update({key: value for key, value in extra.items() if value is not None})
    return entry


def create_job(state: dict[str, Any], payload: dict[str, Any], actor: Actor) -> dict[str, Any]:
    """Store a new job, deducting its packing materials first.

    Nothing is stored when the material assignment is refused.
    """

    job = {key: value for key, value in payload.items() if key not in _TRANSIENT_FIELDS}
    if job.get("id") in (None, ""):
        job["id"] = new_id()
    elif any(str(existing.get("id")) == str(job["id"]) for existing in _jobs(state)):
        raise ValidationError(f"Job #{job['id']} already exists", field="id")

    status = job.get("status") or "assigned"
    if status not in JOB_STATUSES:
        raise ValidationError("Invalid status", field="status")
    job["status"] = status
    job["history"] = list(job.get("history") or []) + [_history_entry(status)]
    job["requirementsAcknowledged"] = bool(job.get("requirementsAcknowledged"))
    job["createdAt"] = utcnow_iso()
    job["createdBy"] = actor.username

    lines = _packing_lines(job.get("packingMaterials"))
    if lines:
        result = inventory_service.assign_to_job(state, job["id"], lines, actor)
        job["packingMaterials"] = result.allocations

    _jobs(state).append(job)
    _notify_job_created(state, job)
    logger.info("Job #%s created by %s", job["id"], actor.username)
    return job


def _notify_job_created(state: dict[str, Any], job: dict[str, Any]) -> None:
    notifications = NotificationService(state)
    team_leader = job.get("teamLeader")
    if team_leader:
        send_quietly(
            notifications.notify,
            team_leader,
            f"New Job Assigned: #{job['id']} - {job.get('clientName') or 'Client'}",
            f"A new job has been assigned to {team_leader}. Job details: "
            f"{job.get('fromAddress') or 'From'} to {job.get('toAddress') or 'To'}",
            type="job-assigned",
        )
    send_quietly(
        notifications.notify_role,
        Role.SUPERVISOR,
        f"New Job Created: #{job['id']}",
        f"A new job has been created and assigned to {team_leader or 'Team Leader'}. "
        f"Client: {job.get('clientName') or 'N/A'}",
        type="job-created",
    )


def update_job(
    state: dict[str, Any], job_id: Any, payload: dict[str, Any], actor: Actor
) -> dict[str, Any]:
    """Merge ``payload`` into the job.

    A ``packingMaterials`` key swaps the job's assignment: the previous lines
    go back to stock and the new ones are taken, all or nothing.
    """

    job = get_job(state, job_id)
    changes = {
        key: value
        for key, value in payload.items()
        if key not in _TRANSIENT_FIELDS and key not in ("id", "history")
    }
    if "status" in changes and changes["status"] not in JOB_STATUSES:
        raise ValidationError("Invalid status", field="status")

    if "packingMaterials" in changes:
        previous = [
            entry for entry in job.get("packingMaterials") or [] if isinstance(entry, dict)
        ]
        new_lines = _packing_lines(changes["packingMaterials"])
        result = inventory_service.reassign_job_materials(
            state, job["id"], previous, new_lines, actor
        )
        changes["packingMaterials"] = result.allocations

    job.update(changes)
    job["updatedAt"] = utcnow_iso()
    return job


def set_status(
    state: dict[str, Any],
    job_id: Any,
    status: str | None,
    *,
    notes: str | None = None,
    image: str | None = None,
) -> dict[str, Any]:
    if status not in JOB_STATUSES:
        raise ValidationError("Invalid status", field="status")
    job = get_job(state, job_id)
    job["status"] = status
    job.setdefault("history", []).append(_history_entry(status, notes=notes, image=image))
    return job


def complete_job(
    state: dict[str, Any], job_id: Any, completion: JobCompletion
) -> tuple[dict[str, Any], dict[str, Any] | None]:
    """Record the team leader's completion and open a collection if needed."""

    job = get_job(state, job_id)
    job["status"] = "waiting-approval"
    job["completionData"] = {
        "rating": completion.rating,
        "signature": completion.signature,
        "notes": completion.notes,
        "tipAmount": completion.tip_amount,
        "materialsCollected": completion.materials_collected,
        "materialsCollectedList": completion.materials_collected_list,
        "completedAt": utcnow_iso(),
    }

    collection = collection_service.create_from_job_completion(
        state,
        job,
        completion.materials_collected,
        completion.materials_collected_list,
    )

    job.setdefault("history", []).append(
        _history_entry(
            "waiting-approval",
            notes="Job completed and submitted for approval",
            completionData=job["completionData"],
        )
    )
    return job, collection


def _credit_team_leader(state: dict[str, Any], job: dict[str, Any]) -> None:
    """Count the approved job on its team leader, matched by username or name."""

    leader = job.get("teamLeader")
    if not leader:
        return
    for user in user_service.users_with_role(state, Role.TEAM_LEADER):
        if leader in (user.get("username"), user.get("name")):
            user["jobsCompleted"] = int(user.get("jobsCompleted") or 0) + 1
            return
    logger.info("Job #%s approved for unknown team leader %s", job.get("id"), leader)


def approve_job(state: dict[str, Any], job_id: Any, actor: Actor) -> dict[str, Any]:
    ensure_allowed("jobs.approve", actor)
    job = get_job(state, job_id)
    now = utcnow_iso()
    job["status"] = "completed"
    job["approvedBy"] = actor.username
    job["approvedAt"] = now
    job["completedDate"] = now
    _credit_team_leader(state, job)
    job.setdefault("history", []).append(
        _history_entry("completed", notes=f"Approved by {actor.name}")
    )
    return job


def delete_job(state: dict[str, Any], job_id: Any, actor: Actor) -> dict[str, Any]:
    ensure_allowed("jobs.delete", actor)
    job = get_job(state, job_id)
    _jobs(state).remove(job)
    logger.info("Job #%s deleted by %s", job.get("id"), actor.username)
    return job


def active_job_for(state: dict[str, Any], user: dict[str, Any]) -> dict[str, Any] | None:
    """The job a team leader is currently working, matched by username or name."""

    identities = {user.get("username"), user.get("name")} - {None, ""}
    for job in _jobs(state):
        if job.get("teamLeader") in identities and job.get("status") in ACTIVE_STATUSES:
            return job
    return None


def attach_bill(
    state: dict[str, Any], job_id: Any, bill: BillRequest, actor: Actor
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Attach an expense bill (receipt already uploaded) to a job."""

    job = get_job(state, job_id)
    now = utcnow_iso()
    record = {
        "id": new_id(),
        "description": bill.description,
        "amount": bill.amount,
        "fileUrl": bill.file_url,
        "notes": bill.notes,
        "attachedBy": bill.attached_by or actor.username,
        "attachedAt": bill.attached_at or now,
        "date": bill.date or now,
    }
    job.setdefault("bills", []).append(record)
    logger.info("Bill %s attached to job #%s", record["id"], job.get("id"))
    return record, job


def list_bills(state: dict[str, Any], job_id: Any) -> list[dict[str, Any]]:
    return list(get_job(state, job_id).get("bills") or [])
