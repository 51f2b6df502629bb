# Folder: autoops/agent/reasoning.py
#
# The reasoning provider capability:
#     complete(system_prompt, user_payload, json_mode, temperature) -> text
# raising ProviderTimeout or ProviderError, nothing else.
#
# The client is built once by the orchestrator and injected into the
# stages - there is no module-level client here.
#
# Timeouts: stages race the call against a timer with call_with_timeout().
# The losing call is abandoned, NOT cancelled - the worker thread keeps
# running until the SDK gives up. SDK clients are therefore also given
# their own request timeout so an abandoned call cannot hang forever.

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Any, Callable, Optional, Protocol, TypeVar

import anthropic
import openai

from agent.errors import ProviderError, ProviderNotConfigured, ProviderTimeout
import config

logger = logging.getLogger(__name__)

T = TypeVar("T")

JSON_ONLY_INSTRUCTION = "Respond with a single JSON object only, no text outside the JSON."


class ReasoningProvider(Protocol):
    name: str

    def complete(self, system_prompt: str, user_payload: str,
                 json_mode: bool = False,
                 temperature: Optional[float] = None) -> str:
        ...


def call_with_timeout(fn: Callable[[], T], timeout_sec: float, label: str) -> T:
    """
    Run fn in a worker thread and wait at most timeout_sec.

    Whichever settles first wins: the result, the provider's error, or
    the timer (→ ProviderTimeout). Unexpected exceptions are wrapped in
    ProviderError so callers only ever catch one family.
    """
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"autoops-{label}")
    future = pool.submit(fn)
    try:
        return future.result(timeout=timeout_sec)
    except FuturesTimeout as e:
        future.cancel()
        raise ProviderTimeout(f"{label} timed out after {timeout_sec:g}s") from e
    except ProviderError:
        raise
    except Exception as e:
        raise ProviderError(f"{label} failed: {e}") from e
    finally:
        # don't wait for an abandoned call
        pool.shutdown(wait=False)


class AnthropicReasoningProvider:
    """Claude via the anthropic SDK (Messages API)"""
    name = "anthropic"

    def __init__(self, api_key: Optional[str] = None,
                 model: str = config.ANTHROPIC_MODEL,
                 temperature: float = config.LLM_TEMPERATURE,
                 max_tokens: int = config.LLM_MAX_TOKENS,
                 request_timeout_sec: float = config.DECISION_TIMEOUT_SEC,
                 client: Any = None):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        if client is None:
            client = anthropic.Anthropic(
                api_key=api_key,
                timeout=request_timeout_sec,
                max_retries=0
            )
        self.client = client

    def complete(self, system_prompt: str, user_payload: str,
                 json_mode: bool = False,
                 temperature: Optional[float] = None) -> str:
        # No response_format on the Messages API - ask for JSON in the prompt
        system = f"{system_prompt}\n{JSON_ONLY_INSTRUCTION}" if json_mode else system_prompt

        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system,
                temperature=self.temperature if temperature is None else temperature,
                messages=[{"role": "user", "content": user_payload}]
            )
        except anthropic.APITimeoutError as e:
            raise ProviderTimeout(f"Anthropic request timed out: {e}") from e
        except anthropic.APIError as e:
            raise ProviderError(f"Anthropic request failed: {e}") from e

        text = "".join(
            getattr(block, "text", "") or "" for block in (response.content or [])
        )
        if not text.strip():
            raise ProviderError("Anthropic returned an empty response")
        return text


class OpenAIReasoningProvider:
    """
    Chat Completions via the openai SDK.
    Also covers OpenAI-compatible hosts (Together) through base_url.
    """

    def __init__(self, api_key: Optional[str] = None,
                 model: str = config.OPENAI_MODEL,
                 base_url: Optional[str] = None,
                 temperature: float = config.LLM_TEMPERATURE,
                 request_timeout_sec: float = config.DECISION_TIMEOUT_SEC,
                 name: str = "openai",
                 client: Any = None):
        self.name = name
        self.model = model
        self.temperature = temperature
        if client is None:
            client = openai.OpenAI(
                api_key=api_key,
                base_url=base_url,
                timeout=request_timeout_sec,
                max_retries=0
            )
        self.client = client

    def complete(self, system_prompt: str, user_payload: str,
                 json_mode: bool = False,
                 temperature: Optional[float] = None) -> str:
        kwargs = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_payload},
            ],
            "temperature": self.temperature if temperature is None else temperature,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = self.client.chat.completions.create(**kwargs)
        except openai.APITimeoutError as e:
            raise ProviderTimeout(f"{self.name} request timed out: {e}") from e
        except openai.OpenAIError as e:
            raise ProviderError(f"{self.name} request failed: {e}") from e

        try:
            text = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise ProviderError(f"{self.name} returned a malformed response: {e}") from e

        if not text or not text.strip():
            raise ProviderError(f"{self.name} returned an empty response")
        return text


def build_reasoning_provider(provider_name: str = config.LLM_PROVIDER) -> ReasoningProvider:
    """
    Construct the configured provider.
    Raises ProviderNotConfigured when its API key is missing - callers
    treat that as "run on fallback logic", not as an error.
    """
    name = (provider_name or "").strip().lower()
    request_timeout = max(config.SUMMARY_TIMEOUT_SEC, config.DECISION_TIMEOUT_SEC)

    if name == "anthropic":
        if not config.ANTHROPIC_API_KEY:
            raise ProviderNotConfigured("ANTHROPIC_API_KEY is not set")
        return AnthropicReasoningProvider(
            api_key=config.ANTHROPIC_API_KEY,
            request_timeout_sec=request_timeout
        )

    if name == "openai":
        if not config.OPENAI_API_KEY:
            raise ProviderNotConfigured("OPENAI_API_KEY is not set")
        return OpenAIReasoningProvider(
            api_key=config.OPENAI_API_KEY,
            request_timeout_sec=request_timeout
        )

    if name == "together":
        if not config.TOGETHER_API_KEY:
            raise ProviderNotConfigured("TOGETHER_API_KEY is not set")
        return OpenAIReasoningProvider(
            api_key=config.TOGETHER_API_KEY,
            model=config.TOGETHER_MODEL,
            base_url=config.TOGETHER_BASE_URL,
            request_timeout_sec=request_timeout,
            name="together"
        )

    raise ValueError(f"Unknown LLM_PROVIDER: {provider_name}")
