"""
Speech-to-text using the OpenAI audio transcription endpoint.

Audio can come from a file on disk or from raw bytes with a MIME type (as a
browser recorder or upload hands it over). The transcript is plain text that
is then fed to topic extraction.
"""

import io
import logging
from pathlib import Path
from typing import Any, Optional

from .config import config, get_client
from .types import Transcript

logger = logging.getLogger(__name__)

# Whisper upload limit
MAX_AUDIO_BYTES = 25 * 1024 * 1024

SUPPORTED_EXTENSIONS = {".mp3", ".mp4", ".mpeg", ".mpga", ".m4a", ".wav", ".webm", ".ogg", ".flac"}

MIME_EXTENSIONS = {
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/wave": ".wav",
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/mp4": ".m4a",
    "audio/m4a": ".m4a",
    "audio/x-m4a": ".m4a",
    "audio/webm": ".webm",
    "audio/ogg": ".ogg",
    "audio/flac": ".flac",
    "video/mp4": ".mp4",
    "video/webm": ".webm",
}


class SpeechError(Exception):
    """Raised when speech processing fails."""

    pass


def extension_for_mime_type(mime_type: Optional[str]) -> str:
    """
    Map a MIME type to an upload filename extension.

    Codec parameters ("audio/webm;codecs=opus") are ignored. Unknown types
    fall back to .wav, the recorder default.
    """
    if not mime_type:
        return ".wav"
    base = mime_type.split(";", 1)[0].strip().lower()
    return MIME_EXTENSIONS.get(base, ".wav")


class SpeechProcessor:
    """
    Handles speech-to-text conversion.

    Transcription only, with automatic language detection; no translation.
    """

    def __init__(self, client: Any = None, project_root: Optional[str] = None):
        self.client = client if client is not None else get_client(project_root)
        self.model = config.asr_model

    def transcribe_audio(self, path: str) -> Transcript:
        """
        Transcribe an audio file.

        Raises:
            SpeechError: If transcription fails or the file is unusable
            FileNotFoundError: If audio file doesn't exist
        """
        audio_path = Path(path)

        if not audio_path.exists():
            raise FileNotFoundError(f"Audio file not found: {path}")

        if not audio_path.is_file():
            raise SpeechError(f"Path is not a file: {path}")

        file_size = audio_path.stat().st_size
        if file_size > MAX_AUDIO_BYTES:
            raise SpeechError(f"Audio file too large: {file_size / 1024 / 1024:.1f}MB (max: 25MB)")

        with open(audio_path, "rb") as audio_file:
            return self._transcribe(audio_file)

    def transcribe_bytes(self, data: bytes, mime_type: Optional[str] = None) -> Transcript:
        """
        Transcribe in-memory audio.

        Args:
            data: Raw audio bytes
            mime_type: MIME type reported by the recorder or upload

        Raises:
            SpeechError: If the audio is empty, too large, or transcription fails
        """
        if not data:
            raise SpeechError("No audio data to transcribe")
        if len(data) > MAX_AUDIO_BYTES:
            raise SpeechError(f"Audio data too large: {len(data) / 1024 / 1024:.1f}MB (max: 25MB)")

        buffer = io.BytesIO(data)
        buffer.name = f"recording{extension_for_mime_type(mime_type)}"
        return self._transcribe(buffer)

    def _transcribe(self, audio_file: Any) -> Transcript:
        try:
            response = self.client.audio.transcriptions.create(model=self.model, file=audio_file, response_format="verbose_json")
        except Exception as e:
            raise SpeechError(f"Failed to transcribe audio: {str(e)}")

        if hasattr(response, "text"):
            text = (response.text or "").strip()
            lang_detected = getattr(response, "language", None) or "auto"
        else:
            text = str(response).strip()
            lang_detected = "auto"

        logger.debug(f"Transcribed {len(text.split())} words (language: {lang_detected})")
        return Transcript(text=text, lang_hint=lang_detected)

    def validate_audio_format(self, path: str) -> bool:
        """True if the file extension is supported by the transcription endpoint."""
        return Path(path).suffix.lower() in SUPPORTED_EXTENSIONS

    def get_audio_info(self, path: str) -> dict:
        """
        Get basic information about the audio file.
        """
        audio_path = Path(path)

        if not audio_path.exists():
            raise FileNotFoundError(f"Audio file not found: {path}")

        stat = audio_path.stat()

        return {
            "path": str(audio_path.absolute()),
            "name": audio_path.name,
            "size_bytes": stat.st_size,
            "size_mb": round(stat.st_size / 1024 / 1024, 2),
            "extension": audio_path.suffix.lower(),
            "supported": self.validate_audio_format(path),
        }
