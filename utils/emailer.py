import logging
import smtplib
from email.message import EmailMessage

from flask import current_app

logger = logging.getLogger(__name__)


def send_email(to_email: str, subject: str, body: str):
    """Sends a plain-text email. Returns (ok, error) and never raises."""
    host = current_app.config.get("SMTP_HOST")
    port = current_app.config.get("SMTP_PORT", 587)
    username = current_app.config.get("SMTP_USERNAME")
    password = current_app.config.get("SMTP_PASSWORD")
    from_email = current_app.config.get("SMTP_FROM_EMAIL") or username
    use_tls = current_app.config.get("SMTP_USE_TLS", True)

    if not host or not from_email:
        return False, "Email not configured"

    msg = EmailMessage()
    msg["From"] = from_email
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)

    try:
        with smtplib.SMTP(host, port, timeout=10) as server:
            if use_tls:
                server.starttls()
            if username and password:
                server.login(username, password)
            server.send_message(msg)
        return True, None
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning("Failed to send email to %s: %s", to_email, exc)
        return False, str(exc)


def send_resolution_email(student, complaint):
    portal = current_app.config.get("PORTAL_NAME", "Sahayya Portal")
    subject = f"Your Complaint Has Been Resolved - {portal}"
    body = (
        f"Dear {student.full_name or student.email},\n\n"
        "We are pleased to inform you that your complaint has been resolved "
        "by our administrative team.\n\n"
        f"Title: {complaint.title}\n"
        f"Category: {complaint.category}\n\n"
        "If you have any further concerns, please submit a new complaint through the portal.\n\n"
        f"Best regards,\n{portal} Team"
    )
    return send_email(student.email, subject, body)
