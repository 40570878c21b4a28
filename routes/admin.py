from flask import Blueprint, jsonify, g, request

from models import db
from models.complaint import (
    Complaint,
    AdminFeedback,
    CATEGORIES,
    STATUSES,
    STATUS_SUBMITTED,
    STATUS_IN_REVIEW,
    STATUS_RESOLVED,
)
from routes.complaints import parse_deadline
from security.rbac import require_roles, ADMIN
from utils.audit import log_event
from utils.emailer import send_resolution_email

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _stats() -> dict:
    counts = dict(
        db.session.query(Complaint.status, db.func.count(Complaint.id))
        .group_by(Complaint.status)
        .all()
    )
    return {
        "total": sum(counts.values()),
        "pending": counts.get(STATUS_SUBMITTED, 0),
        "in_progress": counts.get(STATUS_IN_REVIEW, 0),
        "resolved": counts.get(STATUS_RESOLVED, 0),
    }


def _complaint_with_student(c: Complaint) -> dict:
    row = c.to_dict()
    row["student"] = {
        "full_name": c.student.full_name if c.student else None,
        "email": c.student.email if c.student else None,
    }
    return row


@admin_bp.get("/complaints")
@require_roles(ADMIN)
def list_complaints():
    status = (request.args.get("status") or "").strip().lower()
    category = (request.args.get("category") or "").strip().lower()

    q = Complaint.query
    if status:
        if status not in STATUSES:
            return jsonify(error="Invalid status", allowed=list(STATUSES)), 400
        q = q.filter(Complaint.status == status)
    if category:
        if category not in CATEGORIES:
            return jsonify(error="Invalid category", allowed=list(CATEGORIES)), 400
        q = q.filter(Complaint.category == category)

    rows = q.order_by(Complaint.created_at.desc(), Complaint.id.desc()).limit(500).all()
    log_event("ADMIN_COMPLAINTS_VIEW", user_id=g.user.id)
    return jsonify(
        complaints=[_complaint_with_student(c) for c in rows],
        stats=_stats(),
    ), 200


@admin_bp.get("/stats")
@require_roles(ADMIN)
def stats():
    return jsonify(_stats()), 200


@admin_bp.patch("/complaints/<int:complaint_id>")
@require_roles(ADMIN)
def update_complaint(complaint_id: int):
    complaint = db.session.get(Complaint, complaint_id)
    if not complaint:
        return jsonify(error="Complaint not found"), 404

    data = request.get_json(silent=True) or {}
    status = data.get("status")
    feedback = data.get("feedback")

    if status is not None:
        status = str(status).strip().lower()
        if status not in STATUSES:
            return jsonify(error="Invalid status", allowed=list(STATUSES)), 400
    if feedback is not None and not isinstance(feedback, str):
        return jsonify(error="Invalid feedback"), 400

    if "deadline" in data:
        try:
            complaint.deadline = parse_deadline(data.get("deadline"))
        except ValueError:
            return jsonify(error="Invalid deadline. Use YYYY-MM-DD"), 400

    previous_status = complaint.status
    if status:
        complaint.status = status

    feedback = (feedback or "").strip()
    if feedback:
        db.session.add(AdminFeedback(complaint_id=complaint.id, admin_id=g.user.id, feedback=feedback))
        complaint.feedback = feedback

    db.session.commit()

    log_event(
        "ADMIN_COMPLAINT_UPDATE",
        user_id=g.user.id,
        entity="complaint",
        entity_id=complaint.id,
        metadata={"status": complaint.status, "previous_status": previous_status, "feedback": bool(feedback)},
    )

    email_sent = None
    if complaint.status == STATUS_RESOLVED and previous_status != STATUS_RESOLVED and complaint.student:
        email_sent, error = send_resolution_email(complaint.student, complaint)
        log_event(
            "ADMIN_RESOLUTION_EMAIL",
            user_id=g.user.id,
            entity="complaint",
            entity_id=complaint.id,
            metadata={"sent": email_sent, "error": error},
        )

    return jsonify(message="Complaint updated", complaint=complaint.to_dict(), resolution_email_sent=email_sent), 200


@admin_bp.get("/complaints/<int:complaint_id>/feedback")
@require_roles(ADMIN)
def feedback_history(complaint_id: int):
    complaint = db.session.get(Complaint, complaint_id)
    if not complaint:
        return jsonify(error="Complaint not found"), 404

    return jsonify([
        {
            "id": f.id,
            "admin_id": f.admin_id,
            "feedback": f.feedback,
            "created_at": f.created_at.isoformat(),
        }
        for f in complaint.feedback_entries
    ]), 200
