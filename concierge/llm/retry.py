"""Shared LLM call with retry logic.

Retries transient Vertex AI failures with exponential backoff. Callers wrap
the call in their own deadline (run_with_timeout) and decide their own
final-failure policy.
"""

from __future__ import annotations

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from concierge.config import LLM_MAX_RETRIES
from concierge.infrastructure.settings import GEMINI_MAX_TOKENS, GEMINI_TEMPERATURE
from concierge.llm.gemini import get_gemini_model
from concierge.observability.logging import get_logger
from concierge.observability.telemetry import counter

logger = get_logger(__name__)


@retry(
    stop=stop_after_attempt(LLM_MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((TimeoutError, ConnectionError)),
    reraise=True,
)
def call_llm(prompt: str, counter_prefix: str = "llm", json_output: bool = True) -> str:
    """Call Gemini and return the response text.

    Vertex AI exceptions are converted so tenacity can tell transient from
    permanent failures.

    Raises:
        TimeoutError: Deadline exceeded (retried)
        ConnectionError: Service unavailable, rate limited or internal error (retried)
        Exception: Anything else, not retried
    """
    from google.api_core.exceptions import (
        DeadlineExceeded,
        InternalServerError,
        ResourceExhausted,
        ServiceUnavailable,
    )

    model = get_gemini_model()

    generation_config = {
        "temperature": GEMINI_TEMPERATURE,
        "max_output_tokens": GEMINI_MAX_TOKENS,
    }
    if json_output:
        generation_config["response_mime_type"] = "application/json"

    try:
        response = model.generate_content(prompt, generation_config=generation_config)
        return response.text
    except DeadlineExceeded as e:
        counter(f"{counter_prefix}.llm_timeout")
        raise TimeoutError(f"LLM call timed out: {e}") from e
    except (ServiceUnavailable, InternalServerError) as e:
        counter(f"{counter_prefix}.llm_unavailable")
        logger.warning("LLM service error, will retry: %s", e)
        raise ConnectionError(f"LLM service error: {e}") from e
    except ResourceExhausted as e:
        counter(f"{counter_prefix}.llm_rate_limited")
        logger.warning("LLM rate limited (429), will retry: %s", e)
        raise ConnectionError(f"LLM rate limited: {e}") from e
