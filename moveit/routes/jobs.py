from __future__ import annotations

from flask import Blueprint, jsonify, request

from moveit.exceptions import ValidationError
from moveit.schemas import BillRequest, JobCompletion
from moveit.security import request_username
from moveit.services import jobs as job_service
from moveit.services.users import resolve_actor
from moveit.store import current_store

bp = Blueprint("jobs", __name__, url_prefix="/jobs")


def _json_object() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


@bp.get("")
@bp.get("/")
def list_jobs():
    state = current_store().read()
    return jsonify(job_service.list_jobs(state, status=request.args.get("status") or None))


@bp.get("/<job_id>")
def get_job(job_id: str):
    state = current_store().read()
    return jsonify(job_service.get_job(state, job_id))


@bp.post("")
@bp.post("/")
def create_job():
    payload = _json_object()
    with current_store().transaction() as state:
        actor = resolve_actor(state, request_username())
        job = job_service.create_job(state, payload, actor)
    return jsonify(job), 201


@bp.put("/<job_id>")
def update_job(job_id: str):
    payload = _json_object()
    with current_store().transaction() as state:
        actor = resolve_actor(state, request_username())
        job = job_service.update_job(state, job_id, payload, actor)
    return jsonify(job)


@bp.delete("/<job_id>")
def delete_job(job_id: str):
    with current_store().transaction() as state:
        actor = resolve_actor(state, request_username())
        job_service.delete_job(state, job_id, actor)
    return "", 204


@bp.post("/<job_id>/status")
def update_status(job_id: str):
    payload = _json_object()
    with current_store().transaction() as state:
        job = job_service.set_status(
            state,
            job_id,
            payload.get("status"),
            notes=payload.get("notes"),
            image=payload.get("image"),
        )
    return jsonify(job)


@bp.post("/<job_id>/complete")
def complete_job(job_id: str):
    completion = JobCompletion.from_payload(_json_object())
    with current_store().transaction() as state:
        job, collection = job_service.complete_job(state, job_id, completion)
    response = dict(job)
    response["pendingCollection"] = collection
    return jsonify(response)


@bp.post("/<job_id>/approve")
def approve_job(job_id: str):
    with current_store().transaction() as state:
        actor = resolve_actor(state, request_username())
        job = job_service.approve_job(state, job_id, actor)
    return jsonify(job)


@bp.post("/<job_id>/bills")
def attach_bill(job_id: str):
    bill = BillRequest.from_payload(_json_object())
    with current_store().transaction() as state:
        actor = resolve_actor(state, request_username())
        record, job = job_service.attach_bill(state, job_id, bill, actor)
    return jsonify({"success": True, "bill": record, "job": job}), 201


@bp.get("/<job_id>/bills")
def list_bills(job_id: str):
    state = current_store().read()
    return jsonify(job_service.list_bills(state, job_id))
