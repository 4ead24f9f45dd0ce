"""
Generation Client: the boundary to the external generative-AI service.

Four operations are offered: generate a lesson plan, extract text from an
image, generate a test for a plan, and grade a photographed answer sheet.
Every failure leaves this module as a GenerationError; credential problems
are classified here as CredentialError so no caller inspects message text.
"""

import base64
import logging
import os
from abc import ABC, abstractmethod

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from eduplan import mock_responses, prompts
from eduplan.errors import CredentialError, GenerationError
from eduplan.models import GradingResult, LessonPlan, Test

logger = logging.getLogger(__name__)

PROVIDER_REGISTRY = {
    "mock": {
        "label": "Mock (sem custo)",
        "description": "Respostas simuladas para desenvolvimento e testes.",
    },
    "gemini": {
        "label": "Google Gemini Flash",
        "description": "Rápido e econômico.",
        "default_model": "gemini-2.5-flash",
        "env_var": "GEMINI_API_KEY",
    },
    "gemini-pro": {
        "label": "Google Gemini Pro",
        "description": "Mais lento, respostas mais elaboradas.",
        "default_model": "gemini-2.5-pro",
        "env_var": "GEMINI_API_KEY",
    },
}

# Messages the service uses when the selected key is unknown or revoked
_CREDENTIAL_MARKERS = (
    "API_KEY_INVALID",
    "API key not valid",
    "Requested entity was not found",
    "PERMISSION_DENIED",
)


class GenerationClient(ABC):
    """Interface every generation backend implements."""

    @abstractmethod
    def generate_plan(self, request) -> LessonPlan:
        pass

    @abstractmethod
    def extract_text(self, image_b64: str, mime_type: str) -> str:
        pass

    @abstractmethod
    def generate_test(self, plan: LessonPlan, kind: str) -> Test:
        pass

    @abstractmethod
    def grade_test(self, image_b64: str, test: Test) -> GradingResult:
        pass

    def has_credential(self) -> bool:
        return True


class MockGenerationClient(GenerationClient):
    """Zero-cost client returning canned responses through the real parsers."""

    def generate_plan(self, request):
        text = mock_responses.get_plan_response(
            request.subject, request.grade, request.topic, request.duration
        )
        return prompts.parse_plan(text, request)

    def extract_text(self, image_b64, mime_type):
        _decode_image(image_b64)
        return mock_responses.MOCK_EXTRACTED_TEXT

    def generate_test(self, plan, kind):
        prompts.build_test_prompt(plan, kind)  # validates kind
        count = (
            prompts.OBJECTIVE_QUESTION_COUNT
            if kind == "objective"
            else prompts.SUBJECTIVE_QUESTION_COUNT
        )
        return prompts.parse_test(mock_responses.get_test_response(kind, plan.objectives, count))

    def grade_test(self, image_b64, test):
        _decode_image(image_b64)
        return prompts.parse_grading(mock_responses.get_grading_response(len(test.questions)))


class GeminiGenerationClient(GenerationClient):
    """
    Generation client backed by Google Gemini through the google-genai SDK.

    A client built without an API key is valid; every call then raises
    CredentialError so the UI can start the credential selection flow.
    """

    def __init__(self, api_key=None, model_name="gemini-2.5-flash"):
        self._model_name = model_name
        self.client = genai.Client(api_key=api_key) if api_key else None

    def has_credential(self):
        return self.client is not None

    def _generate(self, contents, json_mode=False):
        if self.client is None:
            raise CredentialError("GEMINI_API_KEY is not configured")

        config = {"response_mime_type": "application/json"} if json_mode else None
        try:
            response = self.client.models.generate_content(
                model=self._model_name, contents=contents, config=config
            )
        except genai_errors.APIError as e:
            raise classify_api_error(e) from e
        except Exception as e:
            # Transport failures (DNS, TLS, timeouts) surface from httpx
            raise GenerationError(f"Gemini request failed: {e}") from e

        text = response.text
        if text is None:
            raise GenerationError("Gemini returned an empty response")
        return text

    def generate_plan(self, request):
        text = self._generate([prompts.build_plan_prompt(request)], json_mode=True)
        return prompts.parse_plan(text, request)

    def extract_text(self, image_b64, mime_type):
        image = types.Part.from_bytes(data=_decode_image(image_b64), mime_type=mime_type)
        text = self._generate([image, prompts.build_extract_text_prompt()])
        return text.strip()

    def generate_test(self, plan, kind):
        text = self._generate([prompts.build_test_prompt(plan, kind)], json_mode=True)
        return prompts.parse_test(text)

    def grade_test(self, image_b64, test):
        image = types.Part.from_bytes(data=_decode_image(image_b64), mime_type="image/jpeg")
        text = self._generate([image, prompts.build_grading_prompt(test)], json_mode=True)
        return prompts.parse_grading(text)


def classify_api_error(error):
    """Map a google-genai APIError onto the EduPlan error taxonomy."""
    detail = f"{getattr(error, 'status', '')} {getattr(error, 'message', '')} {error}"
    if getattr(error, "code", None) in (401, 403) or any(m in detail for m in _CREDENTIAL_MARKERS):
        logger.warning("Gemini rejected the credential: %s", error)
        return CredentialError(f"Gemini credential rejected: {error}")
    return GenerationError(f"Gemini API error: {error}")


def _decode_image(image_b64):
    try:
        return base64.b64decode(image_b64, validate=True)
    except (TypeError, ValueError) as e:
        raise GenerationError(f"Image payload is not valid base64: {e}") from e


def _resolve_api_key(llm_config, env_var):
    return llm_config.get("api_key") or os.getenv(env_var)


def get_client(config):
    """
    Factory function to instantiate the generation client named in config.

    Raises:
        ValueError: for an unknown provider name.
    """
    llm_config = config.get("llm", {})
    provider_name = llm_config.get("provider", "mock")

    if provider_name == "mock":
        return MockGenerationClient()

    entry = PROVIDER_REGISTRY.get(provider_name)
    if entry is None:
        raise ValueError(
            f"Unsupported generation provider: {provider_name}. "
            f"Choose one of: {', '.join(sorted(PROVIDER_REGISTRY))}."
        )

    api_key = _resolve_api_key(llm_config, entry["env_var"])
    if not api_key:
        logger.info("No %s set; generation will ask for a credential", entry["env_var"])
    return GeminiGenerationClient(
        api_key=api_key,
        model_name=llm_config.get("model_name") or entry["default_model"],
    )


def get_provider_info(config):
    """Return provider choices for the settings page."""
    current = config.get("llm", {}).get("provider", "mock")
    return [
        {
            "key": key,
            "label": entry["label"],
            "description": entry["description"],
            "active": key == current,
        }
        for key, entry in PROVIDER_REGISTRY.items()
    ]
