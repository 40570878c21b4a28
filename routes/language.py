from flask import Blueprint, request, jsonify, g

from utils.auth_context import login_required
from utils.audit import log_event
from utils import language

language_bp = Blueprint("language", __name__, url_prefix="/language")


def _error(exc: language.LanguageServiceError):
    return jsonify(error=exc.message), exc.status_code


@language_bp.post("/transliterate")
@login_required
def transliterate():
    data = request.get_json(silent=True) or {}
    try:
        result = language.convert_text(
            data.get("text") or "",
            mode=data.get("mode") or "transliterate",
            source_language=data.get("source_language") or "auto",
            target_language=data.get("target_language") or "English",
        )
    except language.LanguageServiceError as exc:
        return _error(exc)
    return jsonify(result), 200


@language_bp.post("/translate")
@login_required
def translate():
    data = request.get_json(silent=True) or {}
    target = (data.get("target_language") or "").strip()
    if not target:
        return jsonify(error="target_language is required"), 400
    try:
        text = language.translate(
            data.get("text") or "",
            target,
            source_language=data.get("source_language") or "auto",
        )
    except language.LanguageServiceError as exc:
        return _error(exc)
    return jsonify(translated_text=text), 200


@language_bp.post("/tts")
@login_required
def text_to_speech():
    data = request.get_json(silent=True) or {}
    lang = data.get("language") or "english"
    try:
        audio = language.text_to_speech(data.get("text") or "", lang)
    except language.LanguageServiceError as exc:
        return _error(exc)
    return jsonify(audio_content=audio, language_code=language.tts_language_code(lang)), 200


@language_bp.post("/transcribe")
@login_required
def transcribe():
    data = request.get_json(silent=True) or {}
    try:
        text = language.speech_to_text(data.get("audio") or "", data.get("language") or "en-US")
    except language.LanguageServiceError as exc:
        return _error(exc)
    log_event("SPEECH_TO_TEXT", user_id=g.user.id, metadata={"chars": len(text)})
    return jsonify(text=text), 200
