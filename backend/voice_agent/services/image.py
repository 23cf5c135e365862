"""
Image Generation Service - Prompt-templated image endpoint.
"""

import base64
import httpx
import logging
import re
from urllib.parse import quote

from ..core.exceptions import ProviderUnavailable

logger = logging.getLogger(__name__)

_REQUEST_PREFIX = re.compile(
    r"^\s*(?:please\s+)?(?:can\s+you\s+)?(?:create|draw|generate|make|paint|render)\s+"
    r"(?:me\s+)?(?:an?\s+)?(?:images?|pictures?|photos?|art(?:work)?|drawings?|illustrations?)?"
    r"\s*(?:of|showing|with)?\s*",
    re.IGNORECASE,
)


def extract_image_prompt(text: str) -> str:
    """Strip the request wording, keeping the subject ("draw a picture of a cat" -> "a cat")."""
    prompt = _REQUEST_PREFIX.sub("", text or "", count=1).strip(" .!?")
    return prompt or (text or "").strip()


class ImageGenerator:
    """Fetches a generated image for a prompt and returns it as a data URI."""

    name = "image"

    def __init__(self, endpoint_template: str, timeout: float = 60.0):
        self.endpoint_template = endpoint_template
        self.timeout = timeout

    def build_url(self, prompt: str) -> str:
        return self.endpoint_template.format(prompt=quote(prompt, safe=""))

    async def generate(self, prompt: str) -> str:
        """
        Generate an image for ``prompt``.

        Returns:
            ``data:<media-type>;base64,...`` URI

        Raises:
            ProviderUnavailable: Network error, non-2xx status or non-image body
        """
        url = self.build_url(prompt)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                resp = await client.get(url)
        except httpx.HTTPError as e:
            raise ProviderUnavailable(self.name, f"network error: {e}") from e

        if resp.status_code >= 400:
            raise ProviderUnavailable(self.name, f"HTTP {resp.status_code}", status=resp.status_code)

        media_type = resp.headers.get("content-type", "").split(";")[0].strip()
        if not media_type.startswith("image/") or not resp.content:
            raise ProviderUnavailable(self.name, f"unexpected content type: {media_type or 'none'}")

        logger.info(
            "Image generated",
            extra={"extra_fields": {"media_type": media_type, "bytes": len(resp.content)}}
        )
        encoded = base64.b64encode(resp.content).decode("utf-8")
        return f"data:{media_type};base64,{encoded}"
