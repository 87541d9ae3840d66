import logging

import openai
from openai import OpenAI

from . import settings
from .errors import ERR, ProviderUnavailable

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = ("You only generate what the instructions say. "
                 "Use the exact format requested. Do not skip anything. "
                 "Do not explain yourself. Do not add titles, headings or "
                 "comments other than the ones requested.")


class ChatClient:
    """Thin wrapper over the OpenAI chat-completions API.

    Built once by the entry point and passed to whoever needs it.
    """

    def __init__(self, client, model: str = settings.MODEL, temperature: float = settings.TEMPERATURE):
        self._client = client
        self.model = model
        self.temperature = temperature

    def complete(self, instruction: str, content: str = "", *, model: str | None = None,
                 max_tokens: int = 1024, temperature: float | None = None) -> str:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": instruction + ("\n\n" + content if content else "")},
        ]
        try:
            response = self._client.chat.completions.create(
                model=model or self.model,
                messages=messages,
                temperature=self.temperature if temperature is None else temperature,
                max_tokens=max_tokens,
                top_p=1.0,
                frequency_penalty=0,
                presence_penalty=0,
            )
        except openai.OpenAIError as e:
            logger.warning("LLM request failed (%s): %s", type(e).__name__, e)
            raise ProviderUnavailable(ERR["provider_failed"], str(e)) from e
        if not response.choices:
            raise ProviderUnavailable(ERR["provider_failed"], "no choices returned")
        return (response.choices[0].message.content or "").strip()


def build_client(api_key: str | None = None, base_url: str | None = None) -> ChatClient | None:
    """None when no key is configured; grading then uses its deterministic fallbacks."""
    key = (api_key if api_key is not None else settings.OPENAI_API_KEY).strip()
    if not key:
        logger.info("OPENAI_API_KEY not set; LLM collaborators disabled")
        return None
    base = base_url if base_url is not None else settings.OPENAI_BASE_URL
    kwargs = {"api_key": key, "timeout": settings.LLM_TIMEOUT, "max_retries": settings.LLM_MAX_RETRIES}
    if base:
        kwargs["base_url"] = base
    return ChatClient(OpenAI(**kwargs))


def require_client(client: ChatClient | None) -> ChatClient:
    if client is None:
        raise ProviderUnavailable(ERR["no_api_key"])
    return client
