"""
Thin clients for the third-party language APIs: translation and
transliteration through an AI chat-completions gateway, text-to-speech and
speech-to-text over plain HTTP.
"""
import base64
import logging

import requests
from flask import current_app

logger = logging.getLogger(__name__)

MODES = ("translate", "transliterate", "both")

TTS_LANGUAGE_CODES = {
    "english": "en",
    "kannada": "kn",
    "telugu": "te",
    "hindi": "hi",
    "tamil": "ta",
    "malayalam": "ml",
    "marathi": "mr",
    "gujarati": "gu",
    "punjabi": "pa",
    "bengali": "bn",
    "urdu": "ur",
}


class LanguageServiceError(Exception):
    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _system_prompt(mode: str, source_language: str, target_language: str) -> str:
    if mode == "transliterate":
        if source_language == "auto":
            return (
                "You are an expert in Indian language transliteration. The user has typed text "
                "phonetically using English letters. Detect which Indian language they intended "
                "(Kannada, Hindi, Tamil, Telugu, Tulu, Malayalam, etc.) and convert it to the proper "
                "native script. Return ONLY the transliterated text in the native script without any "
                "explanation. If the text is already in a native script or is English, return it as-is."
            )
        return (
            f"You are an expert in {source_language} transliteration. Convert the phonetically typed "
            f"English text into proper {source_language} script. Return ONLY the transliterated text "
            f"in {source_language} native script without any explanation."
        )

    if mode == "translate":
        source = "any language (auto-detect)" if source_language == "auto" else source_language
        return (
            f"You are a professional translator. Translate the given text from {source} to "
            f"{target_language}. Return ONLY the translated text without any additional "
            "explanation or formatting."
        )

    return (
        "You are an expert in Indian languages. First, if the text is typed phonetically in English, "
        "convert it to the proper native script (auto-detect the intended language: Kannada, Hindi, "
        f"Tamil, Telugu, etc.). Then translate it to {target_language}. Return the result in this format:\n"
        "Native Script: [transliterated text]\n"
        "Translation: [translated text]"
    )


def parse_both(converted_text: str):
    """Splits a mode=both reply into (native_script, translation); missing parts are None."""
    native_script = None
    translation = None
    for line in (converted_text or "").splitlines():
        line = line.strip()
        if line.startswith("Native Script:"):
            native_script = line[len("Native Script:"):].strip() or None
        elif line.startswith("Translation:"):
            translation = line[len("Translation:"):].strip() or None
    return native_script, translation


def _raise_for_upstream(response, service: str):
    if response.status_code == 429:
        raise LanguageServiceError("Rate limits exceeded, please try again later.", 429)
    if response.status_code == 402:
        raise LanguageServiceError("Payment required for the language service.", 402)
    logger.error("%s error: %s %s", service, response.status_code, response.text[:500])
    raise LanguageServiceError(f"{service} error", 502)


def convert_text(text: str, mode: str = "translate", source_language: str = "auto",
                 target_language: str = "English") -> dict:
    if not text or not text.strip():
        raise LanguageServiceError("Text is required", 400)
    if mode not in MODES:
        raise LanguageServiceError(f"mode must be one of: {', '.join(MODES)}", 400)

    api_key = current_app.config.get("AI_GATEWAY_API_KEY")
    if not api_key:
        raise LanguageServiceError("AI gateway is not configured", 503)

    payload = {
        "model": current_app.config.get("AI_MODEL"),
        "messages": [
            {"role": "system", "content": _system_prompt(mode, source_language, target_language)},
            {"role": "user", "content": text},
        ],
    }

    try:
        response = requests.post(
            current_app.config["AI_GATEWAY_URL"],
            json=payload,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=current_app.config.get("LANGUAGE_TIMEOUT_SECONDS", 20),
        )
    except requests.RequestException as exc:
        logger.error("AI gateway request failed: %s", exc)
        raise LanguageServiceError("Transliteration service unavailable", 502) from exc

    if not response.ok:
        _raise_for_upstream(response, "Transliteration service")

    try:
        converted = response.json()["choices"][0]["message"]["content"] or ""
    except (ValueError, KeyError, IndexError, TypeError):
        converted = ""

    native_script, translation = (None, None)
    if mode == "both" and "Native Script:" in converted:
        native_script, translation = parse_both(converted)

    return {
        "converted_text": converted,
        "native_script": native_script,
        "translation": translation,
    }


def translate(text: str, target_language: str, source_language: str = "auto") -> str:
    return convert_text(text, "translate", source_language, target_language)["converted_text"]


def tts_language_code(language: str) -> str:
    return TTS_LANGUAGE_CODES.get((language or "").strip().lower(), "en")


def text_to_speech(text: str, language: str = "english") -> str:
    """Returns the synthesized audio as base64."""
    if not text or not text.strip():
        raise LanguageServiceError("Text is required", 400)

    params = {"ie": "UTF-8", "tl": tts_language_code(language), "client": "tw-ob", "q": text}
    try:
        response = requests.get(
            current_app.config["TTS_URL"],
            params=params,
            headers={"User-Agent": "Mozilla/5.0"},
            timeout=current_app.config.get("LANGUAGE_TIMEOUT_SECONDS", 20),
        )
    except requests.RequestException as exc:
        logger.error("TTS request failed: %s", exc)
        raise LanguageServiceError("Failed to generate audio", 502) from exc

    if not response.ok:
        _raise_for_upstream(response, "Text-to-speech service")

    return base64.b64encode(response.content).decode("ascii")


def speech_to_text(audio_base64: str, language: str = "en-US") -> str:
    if not audio_base64:
        raise LanguageServiceError("Audio is required", 400)
    try:
        audio = base64.b64decode(audio_base64, validate=True)
    except ValueError as exc:
        raise LanguageServiceError("Audio must be base64 encoded", 400) from exc

    url = current_app.config.get("STT_URL")
    if not url:
        raise LanguageServiceError("Speech-to-text is not configured", 503)

    headers = {"Content-Type": "audio/webm"}
    api_key = current_app.config.get("STT_API_KEY")
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"

    try:
        response = requests.post(
            url,
            data=audio,
            params={"language": language},
            headers=headers,
            timeout=current_app.config.get("LANGUAGE_TIMEOUT_SECONDS", 20),
        )
    except requests.RequestException as exc:
        logger.error("STT request failed: %s", exc)
        raise LanguageServiceError("Failed to transcribe audio", 502) from exc

    if not response.ok:
        _raise_for_upstream(response, "Speech-to-text service")

    try:
        data = response.json()
    except ValueError:
        data = {}
    return (data.get("text") or data.get("message") or "").strip()
