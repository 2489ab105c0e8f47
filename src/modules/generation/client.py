"""Client for the remote generation functions."""

from dataclasses import dataclass, field
from typing import Any

import aiohttp

from src.utils.logger import get_logger
from src.utils.path_helpers import clean_refs
from src.utils.settings.auth import AuthSettings
from src.utils.settings.generation import GenerationSettings

logger = get_logger(__name__)

# Response fields that carry generated media references
OUTPUT_REF_FIELDS = ("generatedImageUrl", "resultImage", "imageUrl", "image", "videoUrl")


def _has_payload(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, tuple, dict, set)):
        return len(value) > 0
    return True


@dataclass(frozen=True)
class GenerationResult:
    result: Any = None
    error: str | None = None
    output_refs: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None and _has_payload(self.result)

    @classmethod
    def failure(cls, error: str) -> "GenerationResult":
        return cls(error=error)

    @classmethod
    def coerce(cls, raw: Any) -> "GenerationResult":
        """Accept a GenerationResult or a ``{result}`` / ``{error}`` mapping."""
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, dict):
            return cls(
                result=raw.get("result"),
                error=raw.get("error"),
                output_refs=clean_refs(raw.get("output_refs")),
            )
        return cls(result=raw)


class GenerationClient:
    """Calls a generation function by feature key with the service bearer key."""

    def __init__(self, base_url: str | None = None, timeout: int | None = None):
        settings = GenerationSettings()
        auth_settings = AuthSettings()
        self.base_url = (
            base_url
            or settings.GENERATION_FUNCTIONS_URL
            or f"{auth_settings.SUPABASE_URL.rstrip('/')}/functions/v1"
        ).rstrip("/")
        self.timeout = timeout or settings.GENERATION_TIMEOUT_SECONDS
        self.api_key = auth_settings.SUPABASE_KEY

    async def generate(self, feature_key: str, payload: dict[str, Any]) -> GenerationResult:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
            headers["apikey"] = self.api_key

        async with aiohttp.ClientSession() as session:
            try:
                async with session.post(
                    f"{self.base_url}/{feature_key}",
                    json=payload,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    data = await response.json(content_type=None)
                    if response.status >= 400:
                        error = self._error_message(data) or f"HTTP {response.status}"
                        logger.warning(
                            f"Generation function {feature_key} returned {response.status}: {error}"
                        )
                        return GenerationResult.failure(error)
                    return self._parse_response(data)
            except aiohttp.ClientError as e:
                logger.error(f"Generation request failed for {feature_key}: {e}")
                raise RuntimeError(f"Generation service unavailable: {e}") from e

    @staticmethod
    def _error_message(data: Any) -> str | None:
        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            return error if isinstance(error, str) else str(error)
        return None

    def _parse_response(self, data: Any) -> GenerationResult:
        """Map a function response to a GenerationResult."""
        if not isinstance(data, dict):
            return GenerationResult(result=data)

        error = self._error_message(data)
        if error:
            return GenerationResult.failure(error)
        if data.get("success") is False:
            return GenerationResult.failure(data.get("message") or "Generation failed")

        refs = [data.get(name) for name in OUTPUT_REF_FIELDS]
        images = data.get("images")
        if isinstance(images, list):
            refs.extend(images)

        return GenerationResult(result=data, output_refs=clean_refs(refs))
