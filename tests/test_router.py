"""Intent router parsing and classification tests."""

import json

import pytest

from catalog_chat.errors import MalformedClassification
from catalog_chat.models import Intent
from catalog_chat.tools.router import IntentRouter, parse_classification

from conftest import FakeLLM, router_reply


@pytest.mark.parametrize(
    "intent",
    ["semantic_search", "image_search", "price_prediction", "general_question"],
)
def test_recognized_intents(intent):
    result = parse_classification(router_reply(intent, "Smart Blender"))
    assert result.intent is Intent(intent)
    assert result.route is Intent(intent)
    assert result.parameters.query == "Smart Blender"


def test_unknown_intent_falls_back_to_general_question():
    result = parse_classification(router_reply("weather_forecast", "Berlin"))
    assert result.intent is Intent.UNRECOGNIZED
    assert result.route is Intent.GENERAL_QUESTION
    assert result.raw_intent == "weather_forecast"


def test_general_question_may_have_empty_query():
    result = parse_classification(json.dumps({"intent": "general_question"}))
    assert result.route is Intent.GENERAL_QUESTION
    assert result.parameters.query == ""


def test_search_without_query_becomes_general_question():
    result = parse_classification(router_reply("semantic_search", "   "))
    assert result.route is Intent.GENERAL_QUESTION


@pytest.mark.parametrize(
    "payload, expected_intent",
    [
        ({"intent": "general_question", "parameters": None}, Intent.GENERAL_QUESTION),
        ({"intent": "general_question", "parameters": {"query": None}}, Intent.GENERAL_QUESTION),
        ({"intent": "general_question", "parameters": {}}, Intent.GENERAL_QUESTION),
        ({"intent": "price_prediction", "parameters": None}, Intent.UNRECOGNIZED),
        ({"intent": "image_search", "parameters": {"query": None}}, Intent.UNRECOGNIZED),
    ],
)
def test_null_parameters_mean_empty_query(payload, expected_intent):
    result = parse_classification(json.dumps(payload))
    assert result.intent is expected_intent
    assert result.route is Intent.GENERAL_QUESTION
    assert result.parameters.query == ""


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        "```json\n{\"intent\": \"semantic_search\"}\n```",
        json.dumps({"parameters": {"query": "x"}}),
        json.dumps(["semantic_search"]),
        json.dumps({"intent": 3}),
        json.dumps({"intent": "semantic_search", "parameters": "x"}),
        "",
    ],
)
def test_malformed_output_raises(raw):
    with pytest.raises(MalformedClassification):
        parse_classification(raw)


async def test_classify_makes_one_json_call_with_current_text_only():
    llm = FakeLLM(router_replies=[router_reply("price_prediction", "steel Smart Blender")])
    router = IntentRouter(llm, "router-model")

    result = await router.classify("What would a steel Smart Blender cost?")

    assert result.route is Intent.PRICE_PREDICTION
    assert len(llm.generate_calls) == 1
    call = llm.generate_calls[0]
    assert call["model"] == "router-model"
    assert call["json_output"] is True
    assert "What would a steel Smart Blender cost?" in call["prompt"]
