"""Image generation for blog post featured images.

Uses Google Gemini's image generation capability via the google-genai SDK.
A missing API key or a failed generation is not an error: callers get
``None`` and the draft simply has no featured image yet.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

from google import genai
from google.genai import types

from blogpipe.shared.text import slugify

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-3-pro-image-preview"

# Shared across every featured image so posts keep one visual register.
CLINIC_STYLE_PREFIX = (
    "Editorial photograph, bright natural light, calm blue and white palette. "
    "No text, no logos, no UI elements. -- "
)


class ImageGenerator:
    """Generate images via Google Gemini and save them to disk."""

    def __init__(
        self,
        api_key: str = "",
        *,
        model: str = DEFAULT_MODEL,
        style_prefix: str = CLINIC_STYLE_PREFIX,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.style_prefix = style_prefix
        self._client: genai.Client | None = None

    def is_configured(self) -> bool:
        """Check whether image generation is configured."""
        return bool(self.api_key)

    def _get_client(self) -> genai.Client:
        """Lazy-create and cache the genai Client."""
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def generate(
        self,
        prompt: str,
        *,
        output_path: Path,
        aspect_ratio: str = "16:9",
    ) -> Path | None:
        """Generate an image from a text prompt and save it to disk.

        Returns:
            The output_path on success, or None if generation failed
            or the service is not configured.
        """
        if not self.is_configured():
            logger.warning("Image generation not configured, skipping")
            return None

        full_prompt = self.style_prefix + prompt

        try:
            client = self._get_client()
            response = client.models.generate_content(
                model=self.model,
                contents=full_prompt,
                config=types.GenerateContentConfig(
                    response_modalities=["TEXT", "IMAGE"],
                    image_config=types.ImageConfig(
                        aspect_ratio=aspect_ratio,
                        image_size="2K",
                    ),
                ),
            )

            for part in response.parts or []:
                if part.inline_data is not None:
                    output_path.parent.mkdir(parents=True, exist_ok=True)
                    part.as_image().save(str(output_path))
                    logger.info("Saved generated image to %s", output_path)
                    return output_path

            logger.warning("No image data in response for prompt: %s", prompt[:80])
            return None

        except Exception:
            logger.warning("Image generation failed for prompt: %s", prompt[:80], exc_info=True)
            return None


def featured_image_prompt(topic: str, keywords: list[str]) -> str:
    """Build the featured image prompt for a clinic article."""
    return (
        f"Professional, high-quality blog header image for a physiotherapy article about \"{topic}\". "
        f"Keywords: {', '.join(keywords[:5])}. "
        "Style: Modern healthcare aesthetic, clean, professional, inspiring. "
        "Include relevant medical/physiotherapy elements. Show people, movement, or healing. "
        "High resolution, suitable for blog cover image. Medical/wellness themed. "
        "Photography style, realistic, professional lighting."
    )


class FeaturedImageService:
    """Produce a featured image for a topic and return where it can be fetched.

    Images are written to ``<images_dir>/<slug>-<timestamp>.png``.  When
    ``public_base_url`` is set the returned URL points there (the directory
    is expected to be served from that address); otherwise a ``file://``
    URI is returned, which the publisher can upload from directly.
    """

    def __init__(
        self,
        generator: ImageGenerator,
        images_dir: Path,
        *,
        public_base_url: str = "",
    ) -> None:
        self.generator = generator
        self.images_dir = images_dir
        self.public_base_url = public_base_url.rstrip("/")

    def generate(self, topic: str, keywords: list[str] | None = None) -> str | None:
        filename = f"{slugify(topic) or 'featured'}-{int(time.time() * 1000)}.png"
        output_path = self.images_dir / filename

        saved = self.generator.generate(
            featured_image_prompt(topic, keywords or []),
            output_path=output_path,
        )
        if saved is None:
            return None

        if self.public_base_url:
            return f"{self.public_base_url}/{filename}"
        return saved.resolve().as_uri()
