"""
Tests for AI question generation and answer analysis.
The OpenAI client is never called: _complete is patched per test.
"""
import json
import random
from unittest.mock import patch

import pytest

from services.ai_service import AIService, extract_json, PROVIDER_OPENAI, PROVIDER_FALLBACK
from services.practice_service import normalize_generation_params
from services.question_bank import template_questions


def params(**overrides):
    return normalize_generation_params({"industry": "finance", "role": "Data Analyst", **overrides})


def test_normalize_generation_params_defaults():
    normalized = normalize_generation_params({"count": 12})
    assert normalized["industry"] == "technology"
    assert normalized["role"] == "Software Engineer"
    assert normalized["experience_level"] == "mid"
    assert normalized["difficulty"] == "medium"
    assert normalized["count"] == 5
    assert normalized["previous_questions"] == []


def test_extract_json_from_fenced_text():
    text = 'Here you go:\n```json\n[{"question": "Why finance?"}]\n```'
    assert extract_json(text) == [{"question": "Why finance?"}]
    assert extract_json("no json here") is None


def test_parse_question_response_fills_defaults():
    service = AIService(api_key="sk-test")
    content = json.dumps([
        {"question": "Walk me through a model you built.", "type": "technical", "difficulty": "hard"},
        {"question": "", "type": "behavioral"},
        {"question": "Tell me about a tough deadline.", "type": "unknown"},
    ])
    questions = service.parse_question_response(content, params(count=3))

    assert len(questions) == 2
    assert questions[0]["question_type"] == "technical"
    assert questions[0]["time_to_answer"] == 180
    assert questions[0]["is_ai_generated"] is True
    assert questions[0]["evaluation_criteria"]
    assert questions[1]["question_type"] == "behavioral"
    assert questions[1]["industry"] == "finance"


@pytest.mark.asyncio
async def test_generate_questions_with_provider():
    service = AIService(api_key="sk-test", rng=random.Random(1))
    content = json.dumps([{"question": "How do you validate a forecast?", "type": "technical"}])
    with patch.object(AIService, "_complete", return_value=content):
        questions, provider = await service.generate_questions(params(count=1))
    assert provider == PROVIDER_OPENAI
    assert questions[0]["question_text"] == "How do you validate a forecast?"


@pytest.mark.asyncio
async def test_short_provider_result_is_topped_up():
    service = AIService(api_key="sk-test", rng=random.Random(1))
    content = json.dumps([{"question": "How do you validate a forecast?", "type": "technical"}])
    with patch.object(AIService, "_complete", return_value=content):
        questions, provider = await service.generate_questions(params(count=3))
    assert provider == PROVIDER_OPENAI
    assert len(questions) == 3
    assert [q["is_ai_generated"] for q in questions] == [True, False, False]


@pytest.mark.asyncio
async def test_provider_failure_falls_back_to_question_bank():
    service = AIService(api_key="sk-test", rng=random.Random(1))
    with patch.object(AIService, "_complete", side_effect=RuntimeError("upstream timeout")):
        questions, provider = await service.generate_questions(params(count=2))
    assert provider == PROVIDER_FALLBACK
    assert len(questions) == 2
    assert all(not q["is_ai_generated"] for q in questions)


@pytest.mark.asyncio
async def test_analyze_answer_with_provider():
    service = AIService(api_key="sk-test")
    content = json.dumps({
        "score": 140,
        "strengths": ["Clear structure"],
        "improvements": ["Add metrics"],
        "tips": ["Use STAR"],
        "overallAssessment": "Solid answer",
    })
    with patch.object(AIService, "_complete", return_value=content):
        feedback, provider = await service.analyze_answer({
            "question": "Tell me about a project.", "question_type": "behavioral", "answer": "I led a project.",
        })
    assert provider == PROVIDER_OPENAI
    assert feedback["score"] == 100
    assert feedback["overall_assessment"] == "Solid answer"
    assert feedback["performance_level"] == "Advanced"


@pytest.mark.asyncio
async def test_analyze_answer_unparseable_output_falls_back():
    service = AIService(api_key="sk-test", rng=random.Random(2))
    with patch.object(AIService, "_complete", return_value="I think it was fine."):
        feedback, provider = await service.analyze_answer({
            "question": "Q", "question_type": "technical", "answer": "I used a cache to fix the latency problem.",
        })
    assert provider == PROVIDER_FALLBACK
    assert 50 <= feedback["score"] <= 95


@pytest.mark.asyncio
async def test_empty_answer_skips_provider():
    service = AIService(api_key="sk-test")
    with patch.object(AIService, "_complete") as complete:
        feedback, provider = await service.analyze_answer({"question": "Q", "question_type": "behavioral", "answer": "  "})
    complete.assert_not_called()
    assert provider == PROVIDER_FALLBACK
    assert feedback["score"] == 70


@pytest.mark.asyncio
async def test_buddy_reply_fallbacks():
    reply, provider = await AIService(api_key="").generate_buddy_response("", "hello")
    assert (reply, provider) == ("Great point! Let me think about that...", PROVIDER_FALLBACK)

    with patch.object(AIService, "_complete", side_effect=RuntimeError("down")):
        reply, provider = await AIService(api_key="sk-test").generate_buddy_response("", "hello")
    assert (reply, provider) == ("That's interesting! Can you elaborate more on that?", PROVIDER_FALLBACK)


def test_template_questions_avoid_previous():
    first = template_questions(1, "retail", "Store Manager", "easy", "entry", "behavioral", rng=random.Random(4))
    second = template_questions(1, "retail", "Store Manager", "easy", "entry", "behavioral",
                                previous=[first[0]["question_text"]], rng=random.Random(4))
    assert first[0]["question_text"] != second[0]["question_text"]
    assert first[0]["time_to_answer"] == 90
