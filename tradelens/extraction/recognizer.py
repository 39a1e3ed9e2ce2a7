"""Transcribe exchange screenshots to plain text using Claude Vision."""

from __future__ import annotations

import base64
import logging
from typing import Optional

import anthropic

from ..config import DEFAULT_MODEL
from ..errors import InvalidImage, NoTextRecognized, RecognitionError

logger = logging.getLogger(__name__)

RECOGNITION_LANGUAGES = ("zh-Hans", "en-US")

TRANSCRIPTION_PROMPT = """\
You are transcribing a screenshot of a crypto futures exchange (trade history,
position history or a closed-position detail page).

Transcribe ALL visible text, line by line, top to bottom, exactly as shown.
The screenshot may mix Simplified Chinese ({0}) and English ({1}).

Rules:
- Keep labels and values on the same line when they are on the same row
  (e.g. "开仓价格 42000.5 USDT", "Leverage 20x")
- Keep numbers exactly as displayed, including signs, decimals, % and units
- Keep dates and times exactly as displayed
- Do NOT translate, summarize, reorder or add anything
- Return ONLY the transcribed text, no commentary
- If there is no readable text, return an empty response
""".format(*RECOGNITION_LANGUAGES)

# (signature prefix, media type)
_SIGNATURES: list[tuple[bytes, str]] = [
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
]


def detect_media_type(image_bytes: bytes) -> Optional[str]:
    """Media type from the file signature, or None when unrecognized."""
    for signature, media_type in _SIGNATURES:
        if image_bytes.startswith(signature):
            return media_type
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return None


def _strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        start = 1
        end = -1 if lines[-1].strip() == "```" else len(lines)
        cleaned = "\n".join(lines[start:end]).strip()
    return cleaned


class ClaudeVisionRecognizer:
    """
    Image bytes → recognized text, one screen line per text line.

    Usage:
        recognizer = ClaudeVisionRecognizer(api_key)
        text = recognizer.recognize(png_bytes)
    """

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL, max_tokens: int = 4096) -> None:
        self.client = anthropic.Anthropic(api_key=api_key)
        self.model = model
        self.max_tokens = max_tokens

    def recognize(self, image_bytes: bytes, media_type: Optional[str] = None) -> str:
        """Raises ``InvalidImage``, ``NoTextRecognized`` or ``RecognitionError``."""
        if not image_bytes:
            raise InvalidImage("Image is empty")
        detected = detect_media_type(image_bytes)
        if detected is None:
            raise InvalidImage("Unsupported or corrupt image (expected PNG, JPEG, GIF or WEBP)")
        if media_type and media_type != detected:
            logger.debug("Declared media type %s does not match signature %s", media_type, detected)

        base64_image = base64.standard_b64encode(image_bytes).decode("utf-8")
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "image",
                                "source": {
                                    "type": "base64",
                                    "media_type": detected,
                                    "data": base64_image,
                                },
                            },
                            {"type": "text", "text": TRANSCRIPTION_PROMPT},
                        ],
                    }
                ],
            )
        except anthropic.APIError as e:
            logger.error("Vision transcription failed: %s", e)
            raise RecognitionError(f"Text recognition service failed: {e}") from e

        text = "".join(
            getattr(block, "text", "") for block in response.content
        )
        text = _strip_code_fences(text)
        if not text:
            raise NoTextRecognized()
        return text
