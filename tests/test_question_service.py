"""
Unit tests for AI question generation.

The OpenAI wrapper is replaced by a MagicMock; generated sets are archived
into the mongomock database provided by conftest.
"""

from unittest.mock import MagicMock

import pytest

from app.services.question_service import (
    QuestionGenerationService,
    QuestionGenerationError,
    combo_split,
    detect_languages,
    validate_mcq_questions,
    normalize_generated_question,
)


def make_mcq(qid: str = "q1", correct: str = "B") -> dict:
    return {
        "id": qid,
        "question": "What does HTTP 404 mean?",
        "options": [{"id": o, "text": f"Option {o}", "isCorrect": o == correct} for o in "ABCD"],
        "correctAnswer": correct,
    }


@pytest.fixture
def ai_client():
    return MagicMock()


@pytest.fixture
def service(ai_client):
    return QuestionGenerationService(ai_client=ai_client)


class TestHelpers:

    @pytest.mark.parametrize("total, expected", [
        (10, {"behavioral": 4, "coding": 3, "mcq": 3}),
        (5, {"behavioral": 2, "coding": 2, "mcq": 1}),
        (1, {"behavioral": 1, "coding": 1, "mcq": 0}),
    ])
    def test_combo_split_rounds_up_behavioral_and_coding(self, total, expected):
        assert combo_split(total) == expected

    def test_detect_languages_from_keywords(self):
        assert detect_languages("Rust Engineer", "cargo workspaces") == ["rust"]

    def test_detect_languages_defaults_when_nothing_matches(self):
        assert detect_languages("Office Manager", "") == ["python", "javascript"]

    def test_validate_mcq_requires_four_options(self):
        question = make_mcq()
        question["options"] = question["options"][:3]
        with pytest.raises(QuestionGenerationError, match="exactly 4 options"):
            validate_mcq_questions([question])

    def test_validate_mcq_requires_single_correct_option(self):
        question = make_mcq()
        question["options"][0]["isCorrect"] = True
        with pytest.raises(QuestionGenerationError, match="Exactly one correct"):
            validate_mcq_questions([question])

    def test_normalize_keeps_scoring_fields_and_fills_defaults(self):
        normalized = normalize_generated_question({"question": "Why?", "correctAnswer": "A"}, "behavioral", "hard", 0)
        assert normalized["id"].startswith("ai_generated_")
        assert normalized["questionType"] == "behavioral"
        assert normalized["difficultyLevel"] == "hard"
        assert normalized["correctAnswer"] == "A"
        assert normalized["aiGenerated"] is True


class TestGenerate:

    def test_requires_topic_or_job_context(self, service):
        with pytest.raises(ValueError, match="Either 'topic'"):
            service.generate("mcq", {"job_position": "Engineer"})

    def test_rejects_unknown_type(self, service):
        with pytest.raises(ValueError, match="Unsupported question type"):
            service.generate("essay", {"topic": "Python"})

    def test_topic_mode_defaults_to_three_questions(self, service, ai_client):
        ai_client.generate_questions.return_value = [make_mcq("a"), make_mcq("b"), make_mcq("c")]

        result = service.generate("mcq", {"topic": "HTTP"})

        prompt = ai_client.generate_questions.call_args[0][1]
        assert "Generate exactly 3 mcq" in prompt
        assert result["metadata"]["mode"] == "question-bank"
        assert result["metadata"]["generated"] == 3
        assert all(q["type"] == "mcq" for q in result["questions"])

    def test_invalid_mcq_output_raises(self, service, ai_client):
        bad = make_mcq()
        bad["options"] = bad["options"][:2]
        ai_client.generate_questions.return_value = [bad]
        with pytest.raises(QuestionGenerationError):
            service.generate("mcq", {"topic": "HTTP"})

    def test_malformed_json_becomes_generation_error(self, service, ai_client):
        ai_client.generate_questions.side_effect = ValueError("Expecting value")
        with pytest.raises(QuestionGenerationError, match="malformed"):
            service.generate("behavioral", {"topic": "Teamwork"})

    def test_combo_calls_each_type_and_detects_languages(self, service, ai_client):
        def fake_generate(system, prompt, max_tokens=4000):
            if "mcq interview questions" in prompt:
                return [make_mcq("m1")]
            return [{"question": "Tell me about..."}]

        ai_client.generate_questions.side_effect = fake_generate
        result = service.generate("combo", {
            "job_position": "Rust Engineer",
            "job_description": "cargo and tokio",
            "total_questions": 10,
        })

        assert ai_client.generate_questions.call_count == 3
        assert result["metadata"]["languages"] == ["rust"]
        assert {q["type"] for q in result["questions"]} == {"behavioral", "coding", "mcq"}
        assert all(q["id"] for q in result["questions"])

    def test_generation_is_archived(self, service, ai_client, mongo_db):
        ai_client.generate_questions.return_value = [{"question": "Describe a conflict"}]
        service.generate("behavioral", {"topic": "Conflict"}, company_id="company-1")

        archived = mongo_db["ai_generations"].find_one({"company_id": "company-1"})
        assert archived["generation_type"] == "behavioral"
        assert archived["question_count"] == 1

    def test_fallback_normalizes_questions(self, service, ai_client):
        ai_client.generate_questions.return_value = [{"question": "Describe a conflict"}]
        questions = service.generate_fallback("Behavioral", "Support Lead", 1, company_name="Acme")

        assert questions[0]["questionType"] == "behavioral"
        assert questions[0]["aiGenerated"] is True
        prompt = ai_client.generate_questions.call_args[0][1]
        assert "Support Lead at Acme" in prompt

    def test_fallback_rejects_unknown_interview_type(self, service):
        with pytest.raises(ValueError, match="Unsupported interview type"):
            service.generate_fallback("essay", "Engineer", 2)
