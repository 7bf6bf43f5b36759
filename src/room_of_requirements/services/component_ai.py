from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Union

from ..domain.base import utc_now
from ..domain.compost_models import COMPONENT_TYPES, ComponentChunk, ProcessedFile
from .openrouter import extract_message_content

LOG = logging.getLogger("ror.llm")

PROMPT_CONTENT_LIMIT = 8000

SYSTEM_PROMPT = (
    "You are an expert software architect specializing in component extraction and reusability analysis."
)

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class Parsed:
    components: List[ComponentChunk]


@dataclass(frozen=True)
class Fallback:
    reason: str


ParseResult = Union[Parsed, Fallback]


def combine_file_content(files: Sequence[ProcessedFile]) -> str:
    return "".join(f"File: {f.original_name}\nContent:\n{f.content}\n\n" for f in files)


def build_extraction_prompt(content: str, project_description: str, basic_count: int) -> str:
    truncated = " ...(truncated)" if len(content) > PROMPT_CONTENT_LIMIT else ""
    return f"""
Project Description: {project_description}

Project Content:
{content[:PROMPT_CONTENT_LIMIT]}{truncated}

Basic Components Identified: {basic_count}

Please analyze this project and provide enhanced component extraction with the following:

1. Identify the most reusable components from the content
2. Improve component titles and descriptions
3. Enhance tags and categorization
4. Adjust reusability scores (0-100)
5. Identify dependencies between components
6. Suggest component combinations or splits

Respond in JSON format:
{{
  "components": [
    {{
      "title": "Component Title",
      "description": "Brief description of what this component does",
      "type": "code|documentation|configuration|design|other",
      "tags": ["tag1", "tag2"],
      "reusabilityScore": 85,
      "dependencies": ["dependency1"],
      "content": "actual component content",
      "improvements": "suggested improvements for reusability"
    }}
  ],
  "insights": "Overall insights about the project's reusable components"
}}

Focus on components that would be valuable in a marketplace for other developers.
"""


def _component_from_json(comp: Dict[str, Any], index: int, stamp: int) -> ComponentChunk:
    score = comp.get("reusabilityScore")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        score = 50
    kind = comp.get("type")
    tags = comp.get("tags")
    deps = comp.get("dependencies")
    return ComponentChunk(
        id=f"ai_component_{stamp}_{index}",
        title=str(comp.get("title") or f"Component {index + 1}"),
        content=str(comp.get("content") or ""),
        type=kind if kind in COMPONENT_TYPES else "other",
        tags=[str(t) for t in tags] if isinstance(tags, list) else [],
        reusability_score=max(0, min(100, int(score))),
        dependencies=[str(d) for d in deps] if isinstance(deps, list) else [],
    )


def parse_component_response(response: Any) -> ParseResult:
    """Read the model's JSON reply into components.

    ``response`` may be the raw completion dict or its message text.
    """
    text = response if isinstance(response, str) else extract_message_content(response)
    if not text:
        return Fallback("empty response")
    match = _JSON_OBJECT_RE.search(text)
    if match is None:
        return Fallback("no JSON object in response")
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        return Fallback(f"invalid JSON: {exc}")
    comps = parsed.get("components") if isinstance(parsed, dict) else None
    if not isinstance(comps, list):
        return Fallback("missing components list")
    stamp = int(utc_now().timestamp() * 1000)
    try:
        components = [_component_from_json(c if isinstance(c, dict) else {}, i, stamp) for i, c in enumerate(comps)]
    except (ValueError, OverflowError) as exc:
        return Fallback(f"unusable component: {exc}")
    return Parsed(components)


class ComponentEnhancer:
    """Asks the gateway to restructure heuristic chunks; never fails the caller."""

    def __init__(self, client_factory) -> None:
        self._client_factory = client_factory

    def request(self, files: Sequence[ProcessedFile], project_description: str, basic: List[ComponentChunk]) -> Any:
        prompt = build_extraction_prompt(combine_file_content(files), project_description, len(basic))
        client = self._client_factory()
        return client.send_message(
            [{"role": "system", "content": SYSTEM_PROMPT}, {"role": "user", "content": prompt}],
            "general",
        )

    def enhance(
        self, files: Sequence[ProcessedFile], project_description: str, basic: List[ComponentChunk]
    ) -> ParseResult:
        try:
            response = self.request(files, project_description, basic)
        except Exception as exc:
            LOG.warning("component_enhance_failed", extra={"err": str(exc)})
            return Fallback(f"gateway error: {exc}")
        result = parse_component_response(response)
        if isinstance(result, Fallback):
            LOG.info("component_enhance_fallback", extra={"reason": result.reason})
        return result


def resolve_components(result: ParseResult, basic: List[ComponentChunk]) -> List[ComponentChunk]:
    if isinstance(result, Parsed):
        return result.components
    return basic

