from models.db import db
from utils.clock import utcnow

CATEGORIES = (
    "infrastructure",
    "academics",
    "hostel",
    "harassment",
    "facilities",
    "administration",
    "other",
)

STATUS_SUBMITTED = "submitted"
STATUS_IN_REVIEW = "in_review"
STATUS_RESOLVED = "resolved"
STATUSES = (STATUS_SUBMITTED, STATUS_IN_REVIEW, STATUS_RESOLVED)

TITLE_MAX_LEN = 100


class Complaint(db.Model):
    __tablename__ = "complaints"

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    category = db.Column(db.String(30), nullable=False, index=True)
    title = db.Column(db.String(TITLE_MAX_LEN), nullable=False)
    description = db.Column(db.Text, nullable=False)
    location = db.Column(db.String(255), nullable=True)

    # paths are relative to UPLOAD_FOLDER
    image_path = db.Column(db.String(255), nullable=True)
    voice_note_path = db.Column(db.String(255), nullable=True)
    kannada_translation = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(20), nullable=False, default=STATUS_SUBMITTED, index=True)
    deadline = db.Column(db.Date, nullable=True)
    feedback = db.Column(db.Text, nullable=True)  # latest admin feedback

    student_feedback = db.Column(db.Text, nullable=True)
    student_rating = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    student = db.relationship("User")
    feedback_entries = db.relationship(
        "AdminFeedback",
        back_populates="complaint",
        order_by="AdminFeedback.created_at",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "category": self.category,
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "has_image": self.image_path is not None,
            "has_voice_note": self.voice_note_path is not None,
            "kannada_translation": self.kannada_translation,
            "status": self.status,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "feedback": self.feedback,
            "student_feedback": self.student_feedback,
            "student_rating": self.student_rating,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class AdminFeedback(db.Model):
    __tablename__ = "admin_feedback"

    id = db.Column(db.Integer, primary_key=True)
    complaint_id = db.Column(db.Integer, db.ForeignKey("complaints.id"), nullable=False, index=True)
    admin_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    feedback = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    complaint = db.relationship("Complaint", back_populates="feedback_entries")
