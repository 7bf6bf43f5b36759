import json

from src.room_of_requirements.domain.compost_models import ComponentChunk, ProcessedFile
from src.room_of_requirements.services.component_ai import (
    PROMPT_CONTENT_LIMIT,
    ComponentEnhancer,
    Fallback,
    Parsed,
    build_extraction_prompt,
    parse_component_response,
    resolve_components,
)

from .fakes import FakeGateway, completion


def _basic():
    return [
        ComponentChunk(
            id="file_1_chunk_0",
            title="Auth helpers",
            content="function login() {}",
            type="code",
            tags=["authentication"],
            reusability_score=70,
            dependencies=[],
        )
    ]


def _files():
    return [ProcessedFile(id="file_1", original_name="a.txt", mime_type="text/plain", size=10, content="body")]


def test_prompt_truncates_long_content():
    prompt = build_extraction_prompt("x" * (PROMPT_CONTENT_LIMIT + 50), "desc", 3)
    assert "x" * PROMPT_CONTENT_LIMIT in prompt
    assert "x" * (PROMPT_CONTENT_LIMIT + 1) not in prompt
    assert "...(truncated)" in prompt
    assert "Basic Components Identified: 3" in prompt


def test_parse_extracts_json_from_prose():
    body = {"components": [{"title": "Grid", "type": "design", "tags": ["ui"], "reusabilityScore": 130, "content": "c"}]}
    result = parse_component_response(completion("Here you go:\n" + json.dumps(body) + "\nThanks"))
    assert isinstance(result, Parsed)
    comp = result.components[0]
    assert comp.title == "Grid"
    assert comp.type == "design"
    assert comp.reusability_score == 100
    assert comp.id.startswith("ai_component_")


def test_parse_defaults_for_missing_fields():
    result = parse_component_response('{"components": [{"type": "weird"}]}')
    assert isinstance(result, Parsed)
    comp = result.components[0]
    assert comp.title == "Component 1"
    assert comp.type == "other"
    assert comp.reusability_score == 50
    assert comp.tags == [] and comp.dependencies == []


def test_parse_fallbacks():
    assert isinstance(parse_component_response(None), Fallback)
    assert isinstance(parse_component_response(completion("no json here")), Fallback)
    assert isinstance(parse_component_response(completion("{not: valid}")), Fallback)
    assert isinstance(parse_component_response(completion('{"items": []}')), Fallback)


def test_unparseable_reply_returns_heuristic_chunks_unchanged():
    basic = _basic()
    snapshot = [c.model_dump() for c in basic]
    gateway = FakeGateway(completion=completion("Sorry, I cannot help with that."))
    out = resolve_components(ComponentEnhancer(lambda: gateway).enhance(_files(), "desc", basic), basic)
    assert out is basic
    assert [c.model_dump() for c in out] == snapshot


def test_gateway_failure_is_a_fallback():
    def broken_factory():
        raise RuntimeError("no key")

    result = ComponentEnhancer(broken_factory).enhance(_files(), "desc", _basic())
    assert isinstance(result, Fallback)
    assert "no key" in result.reason
