import logging
import os
from datetime import date

from flask import Blueprint, request, jsonify, current_app, g, send_from_directory

from models import db
from models.complaint import Complaint, CATEGORIES, STATUSES, TITLE_MAX_LEN
from security.rbac import require_roles, has_role, STUDENT, ADMIN
from utils.audit import log_event
from utils.auth_context import login_required
from utils.language import LanguageServiceError, translate
from utils.storage import UploadError, save_image, save_voice_note, delete_upload

logger = logging.getLogger(__name__)

complaints_bp = Blueprint("complaints", __name__, url_prefix="/complaints")


def parse_deadline(value):
    """YYYY-MM-DD -> date. Empty -> None. Raises ValueError on anything else."""
    if value in (None, ""):
        return None
    if not isinstance(value, str):
        raise ValueError("deadline must be a YYYY-MM-DD string")
    return date.fromisoformat(value)


def _form_data() -> dict:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def _get_visible_complaint(complaint_id: int):
    complaint = db.session.get(Complaint, complaint_id)
    if not complaint:
        return None
    if complaint.student_id != g.user.id and not has_role(ADMIN):
        return None
    return complaint


def _kannada_translation(title: str, description: str):
    try:
        return translate(f"{title}\n\n{description}", "Kannada") or None
    except LanguageServiceError as exc:
        # complaint is still accepted without the translation
        logger.warning("Kannada translation skipped: %s", exc.message)
        return None


@complaints_bp.post("")
@require_roles(STUDENT)
def create_complaint():
    data = _form_data()
    category = (data.get("category") or "").strip().lower()
    title = (data.get("title") or "").strip()
    description = (data.get("description") or "").strip()
    location = (data.get("location") or "").strip() or None

    if category not in CATEGORIES:
        return jsonify(error="Invalid category", allowed=list(CATEGORIES)), 400
    if not title:
        return jsonify(error="title is required"), 400
    if len(title) > TITLE_MAX_LEN:
        return jsonify(error=f"title must be at most {TITLE_MAX_LEN} characters"), 400
    if not description:
        return jsonify(error="description is required"), 400
    if location and len(location) > 255:
        return jsonify(error="location must be at most 255 characters"), 400

    image_path = None
    voice_note_path = None
    try:
        image = request.files.get("image")
        if image and image.filename:
            image_path = save_image(image, g.user.id)
        voice_note = request.files.get("voice_note")
        if voice_note and voice_note.filename:
            voice_note_path = save_voice_note(voice_note, g.user.id)
    except UploadError as exc:
        delete_upload(image_path)
        return jsonify(error=str(exc)), 400

    complaint = Complaint(
        student_id=g.user.id,
        category=category,
        title=title,
        description=description,
        location=location,
        image_path=image_path,
        voice_note_path=voice_note_path,
        kannada_translation=_kannada_translation(title, description),
    )
    db.session.add(complaint)
    db.session.commit()

    log_event("COMPLAINT_CREATE", user_id=g.user.id, entity="complaint", entity_id=complaint.id,
              metadata={"category": category})
    return jsonify(complaint.to_dict()), 201


@complaints_bp.get("")
@require_roles(STUDENT)
def list_my_complaints():
    status = (request.args.get("status") or "").strip().lower()
    q = Complaint.query.filter_by(student_id=g.user.id)
    if status:
        if status not in STATUSES:
            return jsonify(error="Invalid status", allowed=list(STATUSES)), 400
        q = q.filter(Complaint.status == status)

    rows = q.order_by(Complaint.created_at.desc(), Complaint.id.desc()).all()
    return jsonify([c.to_dict() for c in rows]), 200


@complaints_bp.get("/<int:complaint_id>")
@login_required
def get_complaint(complaint_id: int):
    complaint = _get_visible_complaint(complaint_id)
    if not complaint:
        return jsonify(error="Complaint not found"), 404
    return jsonify(complaint.to_dict()), 200


@complaints_bp.patch("/<int:complaint_id>")
@require_roles(STUDENT)
def update_complaint(complaint_id: int):
    complaint = db.session.get(Complaint, complaint_id)
    if not complaint or complaint.student_id != g.user.id:
        return jsonify(error="Complaint not found"), 404

    data = request.get_json(silent=True) or {}
    changed = []

    if "deadline" in data:
        try:
            complaint.deadline = parse_deadline(data.get("deadline"))
        except ValueError:
            return jsonify(error="Invalid deadline. Use YYYY-MM-DD"), 400
        changed.append("deadline")

    if "student_feedback" in data:
        feedback = data.get("student_feedback")
        if feedback is not None and not isinstance(feedback, str):
            return jsonify(error="Invalid student_feedback"), 400
        complaint.student_feedback = (feedback or "").strip() or None
        changed.append("student_feedback")

    if "student_rating" in data:
        rating = data.get("student_rating")
        if rating in (None, 0):
            rating = None
        elif isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            return jsonify(error="student_rating must be an integer from 1 to 5"), 400
        complaint.student_rating = rating
        changed.append("student_rating")

    db.session.commit()
    log_event("COMPLAINT_UPDATE", user_id=g.user.id, entity="complaint", entity_id=complaint.id,
              metadata={"fields": changed})
    return jsonify(complaint.to_dict()), 200


def _send_attachment(relative_path):
    if not relative_path:
        return jsonify(error="Attachment not found"), 404
    folder = current_app.config["UPLOAD_FOLDER"]
    if not os.path.exists(os.path.join(folder, relative_path)):
        return jsonify(error="Attachment not found"), 404
    return send_from_directory(folder, relative_path)


@complaints_bp.get("/<int:complaint_id>/image")
@login_required
def get_image(complaint_id: int):
    complaint = _get_visible_complaint(complaint_id)
    if not complaint:
        return jsonify(error="Complaint not found"), 404
    return _send_attachment(complaint.image_path)


@complaints_bp.get("/<int:complaint_id>/voice_note")
@login_required
def get_voice_note(complaint_id: int):
    complaint = _get_visible_complaint(complaint_id)
    if not complaint:
        return jsonify(error="Complaint not found"), 404
    return _send_attachment(complaint.voice_note_path)
