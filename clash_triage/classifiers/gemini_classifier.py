"""
Gemini classifier implementation.

Sends clash batches to a Gemini model through the google-genai SDK and reads
back a structured JSON classification per clash.
"""

import json
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import httpx
from google import genai
from google.genai import errors, types
from pydantic import TypeAdapter, ValidationError as PydanticValidationError
from typing_extensions import NotRequired, TypedDict, override

from ..exceptions import ClassifierError, MissingCredentialError, ValidationError
from ..interfaces import Classifier
from ..logging_config import get_logger
from ..models import ClashSeverity, ClassificationResult, Discipline, RawClash

# Module-level logger
logger = get_logger("gemini_classifier")

DEFAULT_MODEL = "gemini-3-flash-preview"
API_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")
PROMPTS_DIR = Path(__file__).parent.parent / "prompts"


class GeminiClassifierError(ClassifierError):
    """Base exception for Gemini classifier errors."""

    pass


class InvalidGeminiResponseError(GeminiClassifierError):
    """Raised when Gemini returns a payload that is not the expected shape."""

    pass


class ResultItem(TypedDict):
    """One classification as returned by the model."""

    id: str
    severity: str
    responsibility: str
    description: str
    reasoning: NotRequired[str | None]


class BatchResponse(TypedDict):
    """Type definition for the model's JSON response."""

    results: list[ResultItem]


def resolve_api_key(api_key: str | None = None) -> str | None:
    """Return the explicit key, or the first one found in the environment."""
    if api_key:
        return api_key
    for name in API_KEY_ENV_VARS:
        value = os.environ.get(name)
        if value:
            return value
    return None


def _response_schema() -> types.Schema:
    result = types.Schema(
        type=types.Type.OBJECT,
        properties={
            "id": types.Schema(type=types.Type.STRING),
            "severity": types.Schema(
                type=types.Type.STRING, enum=[s.value for s in ClashSeverity]
            ),
            "responsibility": types.Schema(
                type=types.Type.STRING, enum=[d.value for d in Discipline]
            ),
            "description": types.Schema(type=types.Type.STRING),
            "reasoning": types.Schema(type=types.Type.STRING),
        },
        required=["id", "severity", "responsibility", "description"],
    )
    return types.Schema(
        type=types.Type.OBJECT,
        properties={"results": types.Schema(type=types.Type.ARRAY, items=result)},
    )


class GeminiClassifier(Classifier):
    """
    Gemini-backed classifier.

    Each call is a single generate_content request carrying the whole batch.
    The request is bounded by an HTTP timeout.
    """

    def __init__(
        self,
        api_key: str | None,
        model: str = DEFAULT_MODEL,
        timeout: float = 60.0,
        prompt_file: str | Path | None = None,
    ):
        """
        Initialize Gemini classifier.

        Args:
            api_key: Gemini API key
            model: Model name passed to generate_content
            timeout: Request timeout in seconds
            prompt_file: Path to markdown system prompt (default: triage_system.md)

        Raises:
            MissingCredentialError: If api_key is empty
        """
        if not api_key:
            raise MissingCredentialError("Gemini API key is not configured")

        self.model: str = model
        self.timeout: float = timeout
        self.classifier_id: str = f"gemini:{model}"

        if prompt_file is None:
            prompt_file = PROMPTS_DIR / "triage_system.md"
        self.prompt_file: Path = Path(prompt_file)
        self.request_template: str = (PROMPTS_DIR / "batch_request.md").read_text(encoding="utf-8")

        # SDK timeout is in milliseconds
        self.client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(timeout * 1000)),
        )
        logger.info(f"Initialized Gemini classifier with model {model}, timeout {timeout}s")

    @classmethod
    def from_environment(cls, **kwargs: Any) -> "GeminiClassifier":
        """Build a classifier from GEMINI_API_KEY or API_KEY."""
        return cls(resolve_api_key(), **kwargs)

    @override
    def classify_batch(self, clashes: Sequence[RawClash]) -> list[ClassificationResult] | None:
        """
        Classify a batch of clashes with Gemini.

        Args:
            clashes: Clashes to classify

        Returns:
            Parsed results, or None if the model returned no text

        Raises:
            GeminiClassifierError: If the API call fails or the payload is malformed
        """
        if not clashes:
            raise ValidationError("Cannot classify empty clash list")

        prompt = self._build_prompt(clashes)
        text = self._generate(prompt)
        if not text:
            logger.warning(f"Gemini returned no text for {len(clashes)} clashes")
            return None

        results = self._parse_response(text)
        logger.info(f"Gemini classified {len(results)}/{len(clashes)} clashes")
        return results

    def _build_prompt(self, clashes: Sequence[RawClash]) -> str:
        """
        Build the user prompt from the clash payloads.

        Clash and test names are not sent; only the fields that describe the
        two intersecting elements.
        """
        context = json.dumps([clash.to_payload() for clash in clashes], indent=2)
        return self.request_template.replace("{context}", context)

    def _generate(self, prompt: str) -> str | None:
        """Send one request and return the response text."""
        logger.debug(f"Full prompt: {prompt}")
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    system_instruction=self.prompt_file.read_text(encoding="utf-8"),
                    response_mime_type="application/json",
                    response_schema=_response_schema(),
                ),
            )
        except errors.APIError as e:
            logger.error(f"Gemini request failed: {e}")
            raise GeminiClassifierError(f"Gemini request failed: {e}") from e
        except httpx.TimeoutException as e:
            logger.error(f"Gemini request timed out after {self.timeout}s")
            raise GeminiClassifierError(f"Gemini request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.error(f"Gemini transport error: {e}")
            raise GeminiClassifierError(f"Gemini transport error: {e}") from e

        logger.debug(f"Full model output: {response.text}")
        return response.text

    def _parse_response(self, text: str) -> list[ClassificationResult]:
        """
        Parse the model's JSON text into classification results.

        Severity and responsibility values outside the known enums are kept as
        Unknown rather than rejected.

        Raises:
            InvalidGeminiResponseError: If the text is not JSON of the expected shape
        """
        try:
            payload = TypeAdapter(BatchResponse).validate_python(json.loads(text))
        except json.JSONDecodeError as e:
            raise InvalidGeminiResponseError(f"Failed to parse JSON from Gemini output: {e}") from e
        except PydanticValidationError as e:
            raise InvalidGeminiResponseError(f"Unexpected Gemini response shape: {e}") from e

        results = list[ClassificationResult]()
        for item in payload["results"]:
            if not item["id"]:
                logger.warning("Skipping result without clash id")
                continue
            results.append(
                ClassificationResult(
                    clash_id=item["id"],
                    severity=ClashSeverity.parse(item["severity"]),
                    responsibility=Discipline.parse(item["responsibility"]),
                    description=item["description"],
                    reasoning=item.get("reasoning"),
                )
            )
        return results
