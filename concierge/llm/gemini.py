"""
Gemini model manager - one shared Vertex AI model instance per process.

The relevance classifier and any future summarizer share this instance.
Credentials come from GOOGLE_CLOUD_PROJECT plus the ambient service account.
"""

from __future__ import annotations

import os
from functools import lru_cache

from concierge.infrastructure.settings import GEMINI_LOCATION, GEMINI_MODEL, GOOGLE_CLOUD_PROJECT
from concierge.observability.logging import get_logger

logger = get_logger(__name__)


class GeminiInitializationError(RuntimeError):
    """Raised when Gemini model cannot be initialized."""


@lru_cache(maxsize=1)
def get_gemini_model():
    """
    Get or create shared Gemini model instance.

    Uses @lru_cache for a thread-safe singleton.

    Raises:
        GeminiInitializationError: If the project is not configured or
            Vertex AI initialization fails
    """
    # Read env fresh: settings may have been imported before load_dotenv()
    project = os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT
    location = os.getenv("GEMINI_LOCATION") or GEMINI_LOCATION

    if not project:
        raise GeminiInitializationError("GOOGLE_CLOUD_PROJECT not set")

    try:
        import vertexai
        from vertexai.generative_models import GenerativeModel

        vertexai.init(project=project, location=location)
        model = GenerativeModel(GEMINI_MODEL)
    except Exception as e:
        logger.error("Failed to initialize Gemini model: %s", e)
        raise GeminiInitializationError(f"Failed to initialize Gemini: {e}") from e

    logger.info(
        "Initialized Gemini model (Vertex AI): project=%s, location=%s, model=%s",
        project,
        location,
        GEMINI_MODEL,
    )
    return model
