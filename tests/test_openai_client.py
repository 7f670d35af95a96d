import pytest

from littlewonder.errors import LLMResponseError
from littlewonder.openai_client import extract_json_object, parse_json_payload, strip_code_fences


def test_code_fences_are_stripped():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('{"a": 1}') == '{"a": 1}'


def test_parse_json_payload_accepts_fenced_objects():
    assert parse_json_payload('```\n{"title": "Torre"}\n```') == {"title": "Torre"}


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", ""])
def test_parse_json_payload_rejects_non_objects(raw):
    with pytest.raises(LLMResponseError) as excinfo:
        parse_json_payload(raw)
    assert excinfo.value.raw == raw
    assert excinfo.value.provider == "openai"


def test_extract_json_object_finds_embedded_block():
    assert extract_json_object('Sure! {"stage_title": "x"} Hope it helps') == {"stage_title": "x"}
    assert extract_json_object("no braces") is None
    assert extract_json_object("{broken") is None
    assert extract_json_object("{not: valid}") is None
