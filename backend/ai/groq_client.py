"""
Groq API Client - text generation for study answers and practice questions.

Every call is optional: with no API key, on timeout, rate limit or any API
error the client returns None and the caller uses its templated reply.
Retries are bounded with a short backoff and never block indefinitely.
"""

import logging
import time
from typing import Optional
from groq import Groq, APIError, APITimeoutError, RateLimitError

from app.core.config import settings

# Configure logging (NEVER log API keys)
logger = logging.getLogger(__name__)


class GroqClient:
    """
    Minimal wrapper for Groq chat completions.

    - Model: GROQ_MODEL (llama-3.3-70b-versatile by default)
    - Temperature: 0.7 (study answers read better with some variety)
    - Timeout: GROQ_TIMEOUT_SECONDS per request
    - Retries: 2 on timeout / rate limit, none on other API errors

    Returns the completion text, or None on any failure.
    """

    TEMPERATURE = 0.7
    DEFAULT_MAX_TOKENS = 600
    MAX_RETRIES = 2

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        api_key = api_key if api_key is not None else settings.GROQ_API_KEY
        self.model = model or settings.GROQ_MODEL

        if not api_key:
            logger.warning(
                "[GROQ] GROQ_API_KEY not found in environment. "
                "Text generation is DISABLED, templated replies will be used."
            )
            self.client = None
        else:
            try:
                self.client = Groq(api_key=api_key, timeout=settings.GROQ_TIMEOUT_SECONDS)
                logger.info("[GROQ] Client initialized")
            except Exception as e:
                logger.error(f"[GROQ] Failed to initialize client: {e}")
                self.client = None

    def is_available(self) -> bool:
        return self.client is not None

    def complete(self, prompt: str, max_tokens: int = DEFAULT_MAX_TOKENS) -> Optional[str]:
        """
        One prompt in, completion text out.

        Args:
            prompt: Full prompt including instructions and the user's message
            max_tokens: Upper bound on the completion length

        Returns:
            The model's text, or None when unavailable or on error
        """
        if not self.is_available():
            logger.debug("[GROQ] Client not available - skipping call")
            return None

        for attempt in range(self.MAX_RETRIES + 1):
            try:
                response = self.client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=self.TEMPERATURE,
                    max_tokens=max_tokens,
                    stream=False,
                )

                if response.choices and len(response.choices) > 0:
                    content = response.choices[0].message.content
                    if not content:
                        logger.warning("[GROQ] Empty completion")
                        return None
                    logger.debug(f"[GROQ] Completion received: {len(content)} chars (attempt {attempt+1})")
                    return content.strip()
                logger.warning("[GROQ] Response had no choices")
                return None

            except APITimeoutError:
                if attempt < self.MAX_RETRIES:
                    wait_time = 0.5 * (2 ** attempt)  # 0.5s, 1s
                    logger.warning(f"[GROQ] Timeout, retry {attempt+1}/{self.MAX_RETRIES} after {wait_time}s")
                    time.sleep(wait_time)
                else:
                    logger.warning(f"[GROQ] Timeout after {self.MAX_RETRIES} retries")
                    return None

            except RateLimitError:
                if attempt < self.MAX_RETRIES:
                    wait_time = 1.0 * (2 ** attempt)  # 1s, 2s
                    logger.warning(f"[GROQ] Rate limited, retry {attempt+1}/{self.MAX_RETRIES} after {wait_time}s")
                    time.sleep(wait_time)
                else:
                    logger.warning("[GROQ] Rate limit exceeded after retries")
                    return None

            except APIError as e:
                logger.error(f"[GROQ] API error (permanent): {e}")
                return None

            except Exception as e:
                logger.error(f"[GROQ] Unexpected error: {e}")
                return None

        return None


_groq_client: Optional[GroqClient] = None


def get_groq_client() -> GroqClient:
    """Shared client, created on first use."""
    global _groq_client
    if _groq_client is None:
        _groq_client = GroqClient()
    return _groq_client
