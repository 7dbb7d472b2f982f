"""Async client for the Gemini image-generation REST endpoint.

Uses httpx.AsyncClient to call ``models/{model}:generateContent``. Each call
is a billable, non-retryable request: failures are raised as typed
exceptions and never retried here.
"""

from __future__ import annotations

import base64
import binascii
import io
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from PIL import Image, UnidentifiedImageError

from studio.config import settings


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

class GenerationMode(str, Enum):
    BRAND_SHEET = "brand_sheet"
    AD_STORYBOARD = "ad_storyboard"
    ANI_STORYBOARD = "ani_storyboard"
    GOODS = "goods"
    EMOTICON = "emoticon"
    MOVING_EMOTICON = "moving_emoticon"


@dataclass
class GeneratedImage:
    """Raw image bytes returned by the model."""

    data: bytes
    mime_type: str = "image/png"

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


@dataclass
class ImageConfig:
    image_size: str = "2K"
    aspect_ratio: str = "3:4"


# ---------------------------------------------------------------------------
# Custom exceptions
# ---------------------------------------------------------------------------

class GenerationError(Exception):
    """Base class for failed generation or edit calls."""


class GenerationTimeoutError(GenerationError):
    """Raised when the API does not answer within the configured timeout."""


class GenerationConnectionError(GenerationError):
    """Raised when the API is unreachable."""


class GenerationRejectedError(GenerationError):
    """Raised when the API answers with an error status."""


class MalformedGenerationResponseError(GenerationError):
    """Raised when the response carries no usable image."""


# ---------------------------------------------------------------------------
# Prompt construction
# ---------------------------------------------------------------------------

_HANGUL = re.compile(r"[ㄱ-ㅎㅏ-ㅣ가-힣]")

_CONSISTENCY = (
    "[IMPORTANT: CONSISTENCY CHECK]\n"
    "- A reference image of the character is provided.\n"
    "- You MUST use this EXACT character design.\n"
    "- Match colors, proportions, accessories, and style exactly.\n"
    "- Do not redesign the character, just apply it to the new format below.\n"
)

_MODE_TEMPLATES = {
    GenerationMode.BRAND_SHEET: (
        "You are an expert Character Designer. Generate a masterpiece quality "
        '"Character Brand Sheet" for: {prompt}.\n'
        "{consistency}"
        "Style: Premium 3D Art Toy, vinyl figure aesthetic, soft studio lighting.\n"
        "Layout, top to bottom: character story ({text}), hero shot, "
        "turnaround (front, side, back), motion spots, application mockups."
    ),
    GenerationMode.AD_STORYBOARD: (
        'You are an Expert Advertising Director. Generate a "Commercial Ad Storyboard".\n'
        "{consistency}"
        "Context/Scenario: {prompt}\n"
        "Professional 4-panel vertical comic layout: hook, product intro, "
        "benefit, call to action.\n{text}"
    ),
    GenerationMode.ANI_STORYBOARD: (
        'You are a Lead Animation Director. Generate an "Animation Storyboard".\n'
        "{consistency}"
        "Action Sequence: {prompt}\n"
        "4-5 cinematic 16:9 keyframes stacked vertically with camera angles "
        "and motion cues.\n{text}"
    ),
    GenerationMode.GOODS: (
        'You are a Product Designer. Generate a "Merchandise (Goods) Collection".\n'
        "{consistency}"
        "Theme/Items: {prompt}\n"
        "Photorealistic studio shot of the character on a tote bag, ceramic mug, "
        "phone case, and enamel pin."
    ),
    GenerationMode.EMOTICON: (
        'You are an Emoticon/Sticker Artist. Generate a "Digital Sticker Set".\n'
        "{consistency}"
        "Theme/Emotion: {prompt}\n"
        "3x3 grid of nine distinct emotions, thick white outlines, clean vector "
        "style, clear spacing.\n{text}"
    ),
    GenerationMode.MOVING_EMOTICON: (
        'You are a Game Asset Designer. Generate a "Sprite Sheet" for a Moving Emoticon.\n'
        "{consistency}"
        "Action Loop: {prompt}\n"
        "Uniform 4x4 grid of 16 frames forming one smooth loopable animation."
    ),
}

_EDIT_HINTS = {
    GenerationMode.AD_STORYBOARD: "Maintain the 4-panel comic layout.",
    GenerationMode.EMOTICON: "Maintain the grid layout of stickers.",
    GenerationMode.MOVING_EMOTICON: "Maintain the sprite sheet grid.",
}


def contains_korean(prompt: str) -> bool:
    return bool(_HANGUL.search(prompt))


def image_config_for(mode: GenerationMode) -> ImageConfig:
    """Landscape framing for storyboards and goods, portrait otherwise."""
    if mode in (GenerationMode.ANI_STORYBOARD, GenerationMode.GOODS):
        return ImageConfig(aspect_ratio="4:3")
    return ImageConfig(aspect_ratio="3:4")


def build_generation_prompt(
    prompt: str, mode: GenerationMode, has_reference: bool = False
) -> str:
    text_instruction = (
        "TEXT RENDERING: Vital. Render any text in clear, legible KOREAN (Hangul)."
        if contains_korean(prompt)
        else "TEXT RENDERING: Render text in English."
    )
    return _MODE_TEMPLATES[mode].format(
        prompt=prompt,
        consistency=_CONSISTENCY if has_reference else "",
        text=text_instruction,
    )


def build_edit_prompt(prompt: str, mode: GenerationMode) -> str:
    hint = _EDIT_HINTS.get(mode, "Maintain the 5-section brand sheet layout.")
    korean = (
        "- Ensure any new text or labels are rendered in clear KOREAN (Hangul).\n"
        if contains_korean(prompt)
        else ""
    )
    return (
        "Edit this image.\n\nSTRICT CONSTRAINTS:\n"
        f"- {hint}\n"
        "- Keep the character consistent.\n"
        "- Style: High-quality render.\n"
        f"{korean}\n"
        f"Edit instruction: {prompt}"
    )


# ---------------------------------------------------------------------------
# GeminiClient
# ---------------------------------------------------------------------------

class GeminiClient:
    """Async client for Gemini image generation and editing."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
    ):
        self.api_key = api_key or settings.GEMINI_API_KEY
        self.base_url = (base_url or settings.GEMINI_API_URL).rstrip("/")
        self.model = model or settings.GEMINI_MODEL
        self.timeout = timeout or settings.GEMINI_TIMEOUT_SECONDS

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate(
        self,
        prompt: str,
        mode: GenerationMode,
        reference: GeneratedImage | None = None,
    ) -> GeneratedImage:
        """Generate a new sheet, optionally anchored to a reference image."""
        parts: list[dict[str, Any]] = [
            {"text": build_generation_prompt(prompt, mode, reference is not None)}
        ]
        if reference is not None:
            parts.insert(0, self._inline_part(reference))
        return await self._generate_content(parts, image_config_for(mode))

    async def edit(
        self,
        current: GeneratedImage,
        prompt: str,
        mode: GenerationMode,
    ) -> GeneratedImage:
        """Edit an existing sheet while keeping its layout."""
        parts = [self._inline_part(current), {"text": build_edit_prompt(prompt, mode)}]
        return await self._generate_content(parts, image_config_for(mode))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _inline_part(image: GeneratedImage) -> dict[str, Any]:
        return {"inlineData": {"mimeType": image.mime_type, "data": image.to_base64()}}

    async def _generate_content(
        self, parts: list[dict[str, Any]], image_config: ImageConfig
    ) -> GeneratedImage:
        payload = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "responseModalities": ["IMAGE"],
                "imageConfig": {
                    "imageSize": image_config.image_size,
                    "aspectRatio": image_config.aspect_ratio,
                },
            },
        }

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers={"x-goog-api-key": self.api_key},
            ) as client:
                response = await client.post(
                    f"/models/{self.model}:generateContent", json=payload,
                )
                response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise GenerationTimeoutError(
                f"Gemini request timed out after {self.timeout}s"
            ) from exc
        except httpx.ConnectError as exc:
            raise GenerationConnectionError(
                f"Cannot connect to Gemini at {self.base_url}"
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise GenerationRejectedError(
                f"Gemini returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            # Read/write failures and protocol errors after connecting
            raise GenerationConnectionError(
                f"Connection to Gemini failed: {exc.__class__.__name__}"
            ) from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise MalformedGenerationResponseError("Response is not JSON") from exc
        return self._extract_image(body)

    @staticmethod
    def _extract_image(data: dict) -> GeneratedImage:
        """Return the first inline image in the first candidate."""
        if not isinstance(data, dict):
            raise MalformedGenerationResponseError("Response body is not an object")
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            raise MalformedGenerationResponseError("No candidates returned")

        candidate = candidates[0]
        if not isinstance(candidate, dict):
            raise MalformedGenerationResponseError("Candidate is not an object")
        content = candidate.get("content") or {}
        if not isinstance(content, dict):
            raise MalformedGenerationResponseError("Candidate content is not an object")
        parts = content.get("parts") or []
        if not isinstance(parts, list):
            raise MalformedGenerationResponseError("Candidate parts is not a list")

        for part in parts:
            if not isinstance(part, dict):
                raise MalformedGenerationResponseError("Content part is not an object")
            inline = part.get("inlineData")
            if not inline:
                continue
            if not isinstance(inline, dict):
                raise MalformedGenerationResponseError("inlineData is not an object")
            try:
                raw = base64.b64decode(inline.get("data", ""), validate=True)
            except (binascii.Error, TypeError, ValueError) as exc:
                raise MalformedGenerationResponseError(
                    "Inline image is not valid base64"
                ) from exc
            _verify_image(raw)
            return GeneratedImage(data=raw, mime_type=inline.get("mimeType") or "image/png")

        raise MalformedGenerationResponseError("No image data found in response")


def _verify_image(raw: bytes) -> None:
    """Reject payloads Pillow cannot identify as an image."""
    try:
        with Image.open(io.BytesIO(raw)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise MalformedGenerationResponseError("Inline data is not an image") from exc
