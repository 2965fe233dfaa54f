"""
Provider-agnostic completion service (plain text).

Env (core):
- LLM_PROVIDER: which provider to use (default: "vertexai")
  - vertexai: Gemini via Vertex AI using `langchain_google_vertexai`
  - anthropic: Claude via Anthropic API using `langchain_anthropic`
- LLM_MOCK=1: return a deterministic stub (no external calls)
- LLM_TIMEOUT_SECONDS: HTTP timeout for LLM requests (default: 120, range: 5-300)

Vertex requirements:
- GOOGLE_CLOUD_PROJECT (required)
- GOOGLE_CLOUD_LOCATION (required)
- Application Default Credentials (ADC) must be available

Anthropic requirements:
- ANTHROPIC_API_KEY (required)

Unlike report enrichment, callers here need failures to stop the run, so errors are raised as
`CompletionError` carrying a stable code.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Tuple

from triage.core.context import RunContext
from triage.core.errors import CompletionError

logger = logging.getLogger(__name__)

MOCK_TEXT = "LLM_MOCK enabled: no external call was made."


class CompletionService(Protocol):
    def get_completion(self, ctx: RunContext, prompt: str) -> str: ...

    def get_explanation(self, prompt: str) -> str: ...


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "y", "on")


def _provider() -> str:
    return (os.getenv("LLM_PROVIDER") or "").strip().lower() or "vertexai"


@dataclass(frozen=True)
class LLMConfig:
    model: str
    temperature: float
    max_output_tokens: int
    timeout: int = 120


def _load_config() -> LLMConfig:
    model = (os.getenv("LLM_MODEL") or "").strip() or "gemini-2.5-flash"
    try:
        temperature = float((os.getenv("LLM_TEMPERATURE") or "").strip() or "0.2")
    except ValueError:
        temperature = 0.2
    try:
        max_output_tokens = int((os.getenv("LLM_MAX_OUTPUT_TOKENS") or "").strip() or "4096")
    except ValueError:
        max_output_tokens = 4096
    try:
        timeout = int((os.getenv("LLM_TIMEOUT_SECONDS") or "").strip() or "120")
    except ValueError:
        timeout = 120

    temperature = max(0.0, min(temperature, 1.0))
    max_output_tokens = max(64, min(max_output_tokens, 8192))
    timeout = max(5, min(timeout, 300))

    return LLMConfig(
        model=model,
        temperature=temperature,
        max_output_tokens=max_output_tokens,
        timeout=timeout,
    )


def _vertex_project_location_required() -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """Return (project, location, err_code)."""
    project = (os.getenv("GOOGLE_CLOUD_PROJECT") or "").strip() or None
    location = (os.getenv("GOOGLE_CLOUD_LOCATION") or "").strip() or None
    if not project:
        return None, None, "missing_gcp_project"
    if not location:
        return None, None, "missing_gcp_location"
    return project, location, None


def classify_error(e: Exception, *, model: str) -> str:
    msg = str(e or "").replace("\n", " ").strip()
    up = msg.upper()

    # Timeouts first so HTTP-code checks below don't misclassify them.
    if isinstance(e, TimeoutError):
        return "timeout"
    if "408" in msg:
        return "timeout"
    if "504" in msg:
        return "gateway_timeout"
    if "DEADLINE_EXCEEDED" in up or "DEADLINE EXCEEDED" in up:
        return "deadline_exceeded"
    if "TIMEOUT" in up or "TIMED OUT" in up:
        return "timeout"

    if "PERMISSION_DENIED" in up or "403" in msg:
        return "permission_denied"
    if "UNAUTHENTICATED" in up or "401" in msg:
        return "unauthenticated"
    if "404" in msg or "NOT FOUND" in up:
        return f"model_not_found:{model}"
    if "RATE" in up and "LIMIT" in up:
        return "rate_limited"
    if "MAX_TOKENS" in up or "MAX TOKENS" in up or "CONTEXT LENGTH" in up:
        return "max_tokens_truncated"

    # Anthropic-specific
    if "429" in msg or "OVERLOADED" in up:
        return "rate_limited"
    if "API_KEY" in up and ("INVALID" in up or "MISSING" in up):
        return "unauthenticated"

    return f"llm_error:{type(e).__name__}"


def _get_llm_instance(provider: str, cfg: LLMConfig, *, timeout: Optional[float] = None) -> Any:
    """
    Factory returning the LangChain chat model for `provider`.

    Raises CompletionError with a stable code when the provider cannot be built.
    """
    effective_timeout = cfg.timeout if timeout is None else max(1.0, min(float(cfg.timeout), timeout))

    if provider in ("vertexai", "vertex", "gcp_vertexai"):
        project, location, err = _vertex_project_location_required()
        if err:
            raise CompletionError(err)

        # Preflight ADC so we return stable error codes
        try:
            import google.auth
        except ImportError as e:
            raise CompletionError("adc_import_failed", str(e)) from e
        try:
            google.auth.default(scopes=["https://www.googleapis.com/auth/cloud-platform"])
        except Exception as e:
            raise CompletionError("missing_adc_credentials", str(e)) from e

        try:
            from langchain_google_vertexai import ChatVertexAI
        except ImportError as e:
            raise CompletionError("sdk_import_failed:langchain_google_vertexai", str(e)) from e

        return ChatVertexAI(
            model=cfg.model,
            temperature=cfg.temperature,
            max_output_tokens=cfg.max_output_tokens,
            project=str(project),
            location=str(location),
            timeout=effective_timeout,
        )

    if provider == "anthropic":
        api_key = os.getenv("ANTHROPIC_API_KEY", "").strip()
        if not api_key:
            raise CompletionError("missing_api_key")

        try:
            from langchain_anthropic import ChatAnthropic
        except ImportError as e:
            raise CompletionError("sdk_import_failed:langchain_anthropic", str(e)) from e

        return ChatAnthropic(
            model=cfg.model,
            temperature=cfg.temperature,
            max_tokens=cfg.max_output_tokens,
            anthropic_api_key=api_key,
            timeout=effective_timeout,
        )

    raise CompletionError("provider_not_configured", f"unsupported LLM_PROVIDER: {provider}")


def _message_text(msg: Any) -> str:
    content = getattr(msg, "content", msg)
    if isinstance(content, list):
        # Anthropic returns content blocks; keep text blocks only.
        parts = []
        for block in content:
            if isinstance(block, dict):
                if block.get("type") == "text":
                    parts.append(str(block.get("text") or ""))
            else:
                parts.append(str(block))
        return "".join(parts)
    return str(content or "")


class LangChainCompletionService:
    def __init__(self, provider: Optional[str] = None, config: Optional[LLMConfig] = None) -> None:
        self.provider = provider or _provider()
        self.config = config or _load_config()

    def _invoke(self, prompt: str, *, timeout: Optional[float] = None) -> str:
        if _env_bool("LLM_MOCK", False):
            return MOCK_TEXT
        llm = _get_llm_instance(self.provider, self.config, timeout=timeout)
        try:
            msg = llm.invoke(prompt)
        except Exception as e:
            code = classify_error(e, model=self.config.model)
            logger.warning("completion call failed (%s): %s", code, e)
            raise CompletionError(code, str(e)) from e
        return _message_text(msg)

    def get_completion(self, ctx: RunContext, prompt: str) -> str:
        return self._invoke(prompt, timeout=ctx.request_timeout())

    def get_explanation(self, prompt: str) -> str:
        return self._invoke(prompt)


def get_completion_service() -> Optional[CompletionService]:
    """Build the configured service; None when no provider is selected and mock mode is off."""
    if not (os.getenv("LLM_PROVIDER") or "").strip() and not _env_bool("LLM_MOCK", False):
        return None
    return LangChainCompletionService()
