"""
Content generation
==================

Builds the prompt for a social format, calls Gemini through the google-genai
SDK, splits the answer into display units, debits points and records the
result in the user's history.
"""

import json
import re
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from google import genai
from google.genai import types
from sqlalchemy.orm import Session

from threadcraft.core.config import settings
from threadcraft.core.errors import GenerationError, InsufficientPointsError
from threadcraft.core.logging import get_logger
from threadcraft.db import crud
from threadcraft.schemas.content import ContentType

logger = get_logger(__name__)

MAX_TWEET_LENGTH = 280
GENERATION_ERROR_MESSAGE = "An error occurred while generating content."
UNIT_SEPARATOR = "\n\n"

_BLANK_LINE = re.compile(r"\n\s*\n")

_INSTAGRAM_INSTRUCTIONS = """
Generate 3 options. Each option should have:
- Image description (a few words)
- Caption (2-5 sentences, Instagram-style)
- Use hashtags at the end, like #DreamCar #Achievement

Format the output as JSON like this:
[
  {
    "image": "short image description",
    "caption": "Your Instagram caption with hashtags"
  },
  ...
]
"""


@dataclass(frozen=True)
class ImageInput:
    data: bytes
    mime_type: str


@dataclass
class GenerationResult:
    content_type: ContentType
    units: list[str]
    points: int
    history_id: Optional[UUID] = None
    error: bool = False


def build_prompt(content_type: ContentType, prompt: str, has_image: bool = False) -> str:
    text = f'Generate {content_type.value} content about "{prompt}".'

    if content_type is ContentType.instagram:
        text += _INSTAGRAM_INSTRUCTIONS
        if has_image:
            text += " Incorporate the uploaded image into the captions if possible."
    elif content_type is ContentType.twitter:
        text += (
            f" Provide a thread of 5 tweets, each under {MAX_TWEET_LENGTH} characters,"
            " numbered 1-5."
        )
    return text


def split_blank_lines(text: str) -> list[str]:
    return [segment.strip() for segment in _BLANK_LINE.split(text) if segment.strip()]


def _parse_instagram(text: str) -> list[str]:
    try:
        options = json.loads(text)
    except json.JSONDecodeError:
        return [text]

    if not isinstance(options, list) or not options:
        return [text]
    if not all(isinstance(opt, dict) and isinstance(opt.get("caption"), str) for opt in options):
        return [text]
    return [opt["caption"] for opt in options]


def parse_generated_text(content_type: ContentType, text: str) -> list[str]:
    """Split model output into the units shown to the user.

    Instagram expects a JSON array of {image, caption} and falls back to the
    raw text; Twitter splits on blank lines; LinkedIn is a single unit.
    """
    if content_type is ContentType.instagram:
        return _parse_instagram(text)
    if content_type is ContentType.twitter:
        return split_blank_lines(text)
    return [text]


def split_saved_content(content_type: str, content: str) -> list[str]:
    """Rehydrate a stored history record into display units."""
    if content_type == ContentType.twitter.value:
        return split_blank_lines(content)
    return [content]


class GeminiClient:
    """Thin wrapper over google-genai for single-shot generation."""

    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None):
        self.api_key = api_key or settings.GEMINI_API_KEY
        self.model_name = model_name or settings.GEMINI_MODEL

        if not self.api_key:
            raise GenerationError("Gemini API key is not set. Set GEMINI_API_KEY.")

        self.client = genai.Client(api_key=self.api_key)

    def generate(self, prompt_text: str, image: Optional[ImageInput] = None) -> str:
        contents: list = [prompt_text]
        if image is not None:
            contents.append(types.Part.from_bytes(data=image.data, mime_type=image.mime_type))

        response = self.client.models.generate_content(
            model=self.model_name,
            contents=contents,
        )
        text = response.text
        if not text:
            raise GenerationError("Gemini returned no text (blocked or empty response)")
        return text


class ContentGenerator:
    def __init__(self, client: Optional[GeminiClient] = None, cost: Optional[int] = None):
        self._client = client
        self.cost = settings.POINTS_PER_GENERATION if cost is None else cost

    @property
    def client(self) -> GeminiClient:
        if self._client is None:
            self._client = GeminiClient()
        return self._client

    def generate(
        self,
        db: Session,
        user_id: str,
        content_type: ContentType,
        prompt: str,
        image: Optional[ImageInput] = None,
    ) -> GenerationResult:
        """Run one generation for a user.

        Raises InsufficientPointsError before any model call when the balance
        is below the cost, and GenerationError when the model client cannot be
        configured. Failures after that point are logged and returned as a
        single error unit carrying the current balance.
        """
        balance = crud.get_points(db, user_id)
        if balance < self.cost:
            raise InsufficientPointsError(balance, self.cost)

        client = self.client
        # Only Instagram captions take an image.
        if content_type is not ContentType.instagram:
            image = None

        points = balance
        try:
            prompt_text = build_prompt(content_type, prompt, has_image=image is not None)
            generated_text = client.generate(prompt_text, image)
            units = parse_generated_text(content_type, generated_text)

            points = crud.increment_points(db, user_id, -self.cost)
            item = crud.save_history(
                db,
                user_id,
                UNIT_SEPARATOR.join(units),
                prompt,
                content_type.value,
            )
        except Exception:
            db.rollback()
            logger.exception("Error generating %s content for %s", content_type.value, user_id)
            return GenerationResult(
                content_type=content_type,
                units=[GENERATION_ERROR_MESSAGE],
                points=points,
                error=True,
            )

        logger.info(
            "Generated %s content for %s (%d units, %d points left)",
            content_type.value,
            user_id,
            len(units),
            points,
        )
        return GenerationResult(
            content_type=content_type,
            units=units,
            points=points,
            history_id=item.id,
        )
