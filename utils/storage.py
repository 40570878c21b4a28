import os
import secrets

from flask import current_app
from werkzeug.utils import secure_filename

from utils.clock import utcnow

IMAGE_BUCKET = "complaint-images"
VOICE_BUCKET = "complaint-voice-notes"

IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}
VOICE_EXTENSIONS = {"webm", "ogg", "mp3", "wav", "m4a"}


class UploadError(ValueError):
    pass


def _extension(filename: str) -> str:
    name = secure_filename(filename or "")
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[1].lower()


def _file_size(file_storage) -> int:
    stream = file_storage.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def save_upload(file_storage, bucket: str, owner_id: int, allowed_extensions, max_bytes: int) -> str:
    """
    Validates and stores an uploaded file.
    Returns the path relative to UPLOAD_FOLDER, e.g. complaint-images/3/20260101T101500-ab12cd34.png
    """
    ext = _extension(file_storage.filename)
    if ext not in allowed_extensions:
        raise UploadError(f"File type not allowed. Allowed: {', '.join(sorted(allowed_extensions))}")

    size = _file_size(file_storage)
    if size == 0:
        raise UploadError("Uploaded file is empty")
    if size > max_bytes:
        raise UploadError(f"File must be smaller than {max_bytes // (1024 * 1024)}MB")

    name = f"{utcnow().strftime('%Y%m%dT%H%M%S')}-{secrets.token_hex(4)}.{ext}"
    relative = os.path.join(bucket, str(owner_id), name)

    target = os.path.join(current_app.config["UPLOAD_FOLDER"], relative)
    os.makedirs(os.path.dirname(target), exist_ok=True)
    file_storage.save(target)
    return relative.replace(os.sep, "/")


def save_image(file_storage, owner_id: int) -> str:
    return save_upload(
        file_storage,
        IMAGE_BUCKET,
        owner_id,
        IMAGE_EXTENSIONS,
        current_app.config.get("MAX_IMAGE_BYTES", 5 * 1024 * 1024),
    )


def save_voice_note(file_storage, owner_id: int) -> str:
    return save_upload(
        file_storage,
        VOICE_BUCKET,
        owner_id,
        VOICE_EXTENSIONS,
        current_app.config.get("MAX_VOICE_NOTE_BYTES", 10 * 1024 * 1024),
    )


def delete_upload(relative_path: str) -> None:
    if not relative_path:
        return
    target = os.path.join(current_app.config["UPLOAD_FOLDER"], relative_path)
    if os.path.exists(target):
        os.remove(target)
