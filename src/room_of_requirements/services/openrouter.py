"""HTTP client for the OpenRouter chat completion gateway.

Selects a fixed model profile from the use-case tag, issues the POST and
hands back either the parsed completion or the open streaming response.
There is no retry here; callers own any fallback policy.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterator, List, Optional

import requests
from requests.adapters import HTTPAdapter

from ..config import Settings, get_settings
from ..observability.metrics import LLM_REQUESTS
from ..domain.chat_models import ModelOption

logger = logging.getLogger(__name__)
LOG = logging.getLogger("ror.llm")


@dataclass(frozen=True)
class ModelConfig:
    id: str
    name: str
    description: str
    temperature: float
    max_tokens: int
    use_case: str


MODEL_CONFIGS: Dict[str, ModelConfig] = {
    "claude": ModelConfig(
        id="anthropic/claude-3.5-sonnet",
        name="Claude 3.5 Sonnet",
        description="Primary model for most tasks",
        temperature=0.2,
        max_tokens=8192,
        use_case="general",
    ),
    "gemini_pro": ModelConfig(
        id="google/gemini-pro",
        name="Gemini Pro",
        description="Deep research and complex analysis",
        temperature=0.1,
        max_tokens=4096,
        use_case="research",
    ),
    "gemini_flash": ModelConfig(
        id="google/gemini-flash-1.5",
        name="Gemini Flash",
        description="Quick responses for simple tasks",
        temperature=0.3,
        max_tokens=4096,
        use_case="quick",
    ),
}

SYSTEM_PROMPTS: Dict[str, str] = {
    "concept": (
        "You are an AI assistant helping users in the Room of Requirements platform. "
        "You help with different types of project interactions:\n\n"
        "**Building out a new idea**: Help users articulate their concept clearly by asking thoughtful questions about:\n"
        "- The core problem they're solving\n"
        "- Target audience and use cases\n"
        "- Key features and functionality\n"
        "- Technical considerations\n"
        "- Success metrics and goals\n\n"
        "**Finding an existing component**: Help users discover reusable building blocks, libraries, "
        "frameworks, or existing solutions that could accelerate their development.\n\n"
        "**Composting a project**: Help users thoughtfully decompose/retire an existing project by:\n"
        "- Identifying valuable components that can be extracted and reused\n"
        "- Documenting lessons learned and knowledge to preserve\n"
        "- Planning how to gracefully sunset the project\n"
        "- Determining what parts should be open-sourced or shared with the ecosystem\n"
        "- Creating a \"compost plan\" to return valuable elements back to the development community\n\n"
        "**I trust the universe**: Provide serendipitous project suggestions, random inspiration, or "
        "unexpected connections that might spark new ideas.\n\n"
        "Be conversational, encouraging, and help them think through their needs systematically. "
        "Pay attention to the specific type of interaction they're requesting."
    ),
    "description": (
        "You now understand what the user wants to build. Help them produce the best possible "
        "description of it. Ask them to be very specific about:\n"
        "- Who the users are and the problems they face\n"
        "- Every core feature and how it should behave\n"
        "- Data the product stores and the integrations it needs\n"
        "- Constraints such as platform, budget, timeline and compliance\n\n"
        "Summarise what you have so far after each answer and point out the gaps. When the description "
        "is complete, invite the user to enter the Room of Requirements to generate their PRD."
    ),
    "requirements": (
        "You are helping a user create functional requirements from their project concept.\n"
        "Guide them to specify:\n"
        "- Clear feature descriptions\n"
        "- User stories and acceptance criteria\n"
        "- Technical requirements and constraints\n"
        "- Integration needs and dependencies\n"
        "- Non-functional requirements (performance, security, etc.)\n\n"
        "Ask clarifying questions and help them be specific and comprehensive."
    ),
    "prd": (
        "You are helping create a comprehensive Product Requirements Document (PRD).\n"
        "Structure the conversation to cover:\n"
        "- Executive summary and vision\n"
        "- Target audience and user personas\n"
        "- Feature specifications with acceptance criteria\n"
        "- Technical architecture and stack\n"
        "- Success metrics and KPIs\n"
        "- Implementation roadmap\n\n"
        "Generate a professional, detailed PRD that serves as a blueprint for development."
    ),
    "tasks": (
        "You are helping break down a PRD into actionable development tasks.\n"
        "Focus on:\n"
        "- Identifying discrete, implementable tasks\n"
        "- Analyzing task complexity and dependencies\n"
        "- Estimating effort and timeline\n"
        "- Prioritizing based on dependencies and business value\n"
        "- Creating subtasks for complex items\n\n"
        "Use the TaskMaster framework for structured task management."
    ),
}


class GatewayConfigError(RuntimeError):
    """Raised when the gateway client cannot be constructed."""


class GatewayError(RuntimeError):
    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"OpenRouter API error: {status_code} - {body}")
        self.status_code = status_code
        self.body = body


def model_for_use_case(use_case: Optional[str]) -> str:
    if use_case == "research":
        return "gemini_pro"
    if use_case == "quick":
        return "gemini_flash"
    return "claude"


def model_config_for(use_case: Optional[str]) -> ModelConfig:
    return MODEL_CONFIGS[model_for_use_case(use_case)]


def get_system_prompt(stage: str) -> str:
    return SYSTEM_PROMPTS.get(stage, SYSTEM_PROMPTS["concept"])


def format_conversation(user_message: str, system_prompt: Optional[str] = None) -> List[Dict[str, str]]:
    messages: List[Dict[str, str]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": user_message})
    return messages


def available_models() -> List[ModelOption]:
    return [ModelOption(key=key, **asdict(cfg)) for key, cfg in MODEL_CONFIGS.items()]


def extract_message_content(completion: Any) -> Optional[str]:
    if not isinstance(completion, dict):
        return None
    choices = completion.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message") or {}
    content = message.get("content")
    return content if isinstance(content, str) else None


def iter_stream_content(response: requests.Response) -> Iterator[str]:
    """Yield the incremental ``delta.content`` strings of an SSE completion stream."""
    for raw_line in response.iter_lines():
        if not raw_line:
            continue
        line = raw_line.decode("utf-8") if isinstance(raw_line, bytes) else raw_line
        line = line.strip()
        if not line.startswith("data: "):
            continue
        data = line[6:].strip()
        if data == "[DONE]":
            break
        try:
            parsed = json.loads(data)
        except json.JSONDecodeError:
            LOG.debug("llm_stream_chunk_skipped", extra={"chunk": data[:200]})
            continue
        choices = parsed.get("choices") if isinstance(parsed, dict) else None
        first = choices[0] if isinstance(choices, list) and choices else None
        delta = first.get("delta") if isinstance(first, dict) else None
        if not isinstance(delta, dict):
            LOG.debug("llm_stream_chunk_skipped", extra={"chunk": data[:200]})
            continue
        token = delta.get("content")
        if isinstance(token, str) and token:
            yield token


def _build_session() -> requests.Session:
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=0, pool_connections=10, pool_maxsize=10)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class OpenRouterClient:
    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None) -> None:
        self._settings = settings or get_settings()
        if not self._settings.openrouter_api_key:
            logger.error("OPENROUTER_API_KEY not found in environment variables")
            raise GatewayConfigError("OPENROUTER_API_KEY environment variable is required")
        self._api_key = self._settings.openrouter_api_key
        self.base_url = self._settings.openrouter_base_url
        self._timeout = (self._settings.connect_timeout, self._settings.read_timeout)
        self._session = session or _build_session()
        logger.info("OpenRouter client ready base_url=%s", self.base_url)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self._settings.referer,
            "X-Title": "Room of Requirements",
        }

    def send_message(
        self,
        messages: List[Dict[str, str]],
        use_case: str = "general",
        stream: bool = False,
    ) -> Any:
        """POST a chat completion.

        Returns the decoded JSON body, or the open :class:`requests.Response`
        when ``stream`` is true. Raises :class:`GatewayError` on non-2xx.
        """
        cfg = model_config_for(use_case)
        payload = {
            "model": cfg.id,
            "messages": messages,
            "stream": stream,
            "temperature": cfg.temperature,
            "max_tokens": cfg.max_tokens,
        }
        LOG.info(
            "llm_request",
            extra={"model": cfg.id, "message_count": len(messages), "use_case": use_case, "stream": stream},
        )
        resp = self._session.post(
            f"{self.base_url}/chat/completions",
            json=payload,
            headers=self._headers(),
            timeout=self._timeout,
            stream=stream,
        )
        if not resp.ok:
            body = resp.text
            resp.close()
            LLM_REQUESTS.labels(use_case=use_case, stream=str(stream).lower(), outcome="error").inc()
            LOG.warning("llm_request_failed", extra={"status": resp.status_code, "body": body[:500]})
            raise GatewayError(resp.status_code, body)
        LLM_REQUESTS.labels(use_case=use_case, stream=str(stream).lower(), outcome="ok").inc()
        if stream:
            return resp
        result = resp.json()
        LOG.info(
            "llm_response",
            extra={
                "id": result.get("id") if isinstance(result, dict) else None,
                "content_length": len(extract_message_content(result) or ""),
                "usage": result.get("usage") if isinstance(result, dict) else None,
            },
        )
        return result

    def send_streaming_message(self, messages: List[Dict[str, str]], use_case: str = "general") -> requests.Response:
        return self.send_message(messages, use_case, stream=True)


_client: Optional[OpenRouterClient] = None


def get_openrouter_client() -> OpenRouterClient:
    """Return the shared client, constructing it on first use.

    Raises :class:`GatewayConfigError` when no credential is configured.
    """
    global _client
    if _client is None:
        _client = OpenRouterClient()
    return _client
