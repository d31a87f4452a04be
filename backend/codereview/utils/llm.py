"""
LLM Service - Gemini completion returning structured review comments.

The model is asked for JSON matching an array of {path, line, comment}; the
response is validated before it reaches the dispatcher.
"""

from typing import List, Optional

import backoff
from google import genai
from google.genai import types
from pydantic import TypeAdapter, ValidationError

from codereview.config import settings
from codereview.models.review import ReviewComment
from codereview.utils.logger import get_logger

logger = get_logger(__name__)

REVIEW_SCHEMA = types.Schema(
    type=types.Type.ARRAY,
    items=types.Schema(
        type=types.Type.OBJECT,
        properties={
            "path": types.Schema(type=types.Type.STRING, description="Relative file path"),
            "line": types.Schema(type=types.Type.INTEGER, description="Line number in the new file"),
            "comment": types.Schema(type=types.Type.STRING, description="Clear and actionable feedback"),
        },
        required=["path", "line", "comment"],
        property_ordering=["path", "line", "comment"],
    ),
)

_comments_adapter = TypeAdapter(List[ReviewComment])


class ReviewLLMError(Exception):
    """Raised when the model response is not a valid comment list."""

    pass


def parse_review_comments(raw: str) -> List[ReviewComment]:
    """Validate the model's JSON output."""
    try:
        return _comments_adapter.validate_json(raw or "[]")
    except ValidationError as e:
        raise ReviewLLMError(f"Invalid review JSON: {e}") from e


class ReviewLLM:
    """Interface for the review completion (Gemini, or mock when unconfigured)."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model = model or settings.gemini_chat_model
        self.client = None
        self.provider = "mock"

        if api_key:
            self.client = genai.Client(api_key=api_key)
            self.provider = "gemini"
            logger.info("llm_initialized", provider="Gemini", model=self.model)
        else:
            logger.warning("llm_initialized", provider="mock", message="No GEMINI_API_KEY configured")

    async def review(self, prompt: str) -> List[ReviewComment]:
        """Run the review prompt and return the model's comments."""
        if self.provider == "mock":
            logger.info("using_mock_llm", prompt_preview=prompt[:50])
            return []

        raw = await self._call_gemini(prompt)
        comments = parse_review_comments(raw)
        logger.info("llm_review_complete", model=self.model, comments=len(comments))
        return comments

    @backoff.on_exception(backoff.expo, Exception, max_tries=2, max_time=30)
    async def _call_gemini(self, prompt: str) -> str:
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=REVIEW_SCHEMA,
            ),
        )
        return response.text or "[]"
