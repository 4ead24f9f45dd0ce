"""
Tests for prompt builders, response parsers, mock responses and the
plan/test data model.
"""

import json

import pytest

from eduplan import mock_responses, prompts
from eduplan.errors import GenerationError
from eduplan.models import LessonPlan, LessonPlanRequest, Question, Test

REQUEST = LessonPlanRequest(topic="Frações")


class TestBuildPrompts:
    def test_plan_prompt_includes_request_fields(self):
        request = LessonPlanRequest(
            subject="História",
            grade="8º Ano - Fundamental II",
            topic="Independência do Brasil",
            duration="2 aulas (100 min)",
            planning_type="Semanal",
        )
        prompt = prompts.build_plan_prompt(request)
        for value in ("História", "8º Ano", "Independência do Brasil", "2 aulas", "Semanal", "bnccCodes"):
            assert value in prompt

    def test_objective_test_prompt(self, sample_plan):
        prompt = prompts.build_test_prompt(sample_plan, "objective")
        assert "múltipla escolha" in prompt
        assert sample_plan.title in prompt
        assert "EF06MA07" in prompt

    def test_subjective_test_prompt(self, sample_plan):
        prompt = prompts.build_test_prompt(sample_plan, "subjective")
        assert "dissertativas" in prompt

    def test_unknown_test_kind(self, sample_plan):
        with pytest.raises(ValueError):
            prompts.build_test_prompt(sample_plan, "oral")

    def test_grading_prompt_has_answer_key(self, sample_test):
        prompt = prompts.build_grading_prompt(sample_test)
        assert "Q1: A" in prompt
        assert "Q5: A" in prompt


class TestParseJsonObject:
    def test_bare_object(self):
        assert prompts.parse_json_object('{"a": 1}') == {"a": 1}

    def test_object_in_fenced_text(self):
        text = 'Aqui está:\n```json\n{"score": "3/5"}\n```'
        assert prompts.parse_json_object(text) == {"score": "3/5"}

    def test_array_is_rejected(self):
        assert prompts.parse_json_object("[1, 2]") is None

    def test_garbage(self):
        assert prompts.parse_json_object("sem json") is None
        assert prompts.parse_json_object("") is None


class TestParsePlan:
    def test_request_fields_win(self):
        text = json.dumps(
            {"title": "T", "content": "C", "subject": "Artes", "planningType": "Mensal", "bnccCodes": "EF06MA07"}
        )
        plan = prompts.parse_plan(text, REQUEST)
        assert plan.subject == "Matemática"
        assert plan.planning_type == "Individual"
        assert plan.bncc_codes == ["EF06MA07"]
        assert plan.id
        assert plan.test is None

    def test_distinct_ids(self):
        text = json.dumps({"title": "T", "content": "C"})
        assert prompts.parse_plan(text, REQUEST).id != prompts.parse_plan(text, REQUEST).id

    def test_missing_title_uses_topic(self):
        plan = prompts.parse_plan(json.dumps({"content": "C"}), REQUEST)
        assert "Frações" in plan.title

    def test_missing_content(self):
        with pytest.raises(GenerationError):
            prompts.parse_plan(json.dumps({"title": "T"}), REQUEST)

    def test_not_json(self):
        with pytest.raises(GenerationError):
            prompts.parse_plan("desculpe, não consegui", REQUEST)


class TestParseTest:
    def test_renumbers_questions(self):
        text = json.dumps(
            {
                "questions": [
                    {"number": 7, "question": "a", "correctAnswer": "A", "options": ["1", "2"]},
                    {"number": 7, "question": "b", "correctAnswer": "resposta"},
                ]
            }
        )
        test = prompts.parse_test(text)
        assert [q.number for q in test.questions] == [1, 2]
        assert test.questions[0].is_objective
        assert not test.questions[1].is_objective

    def test_no_questions(self):
        with pytest.raises(GenerationError):
            prompts.parse_test('{"questions": []}')

    def test_question_not_object(self):
        with pytest.raises(GenerationError):
            prompts.parse_test('{"questions": ["q1"]}')


class TestParseGrading:
    def test_score_and_feedback(self):
        result = prompts.parse_grading('{"score": 4, "feedback": "Bom"}')
        assert result.score == "4"
        assert result.feedback == "Bom"

    def test_missing_score(self):
        with pytest.raises(GenerationError):
            prompts.parse_grading('{"feedback": "Bom"}')


class TestMockResponses:
    def test_plan_response_parses(self):
        text = mock_responses.get_plan_response("Ciências", "7º Ano - Fundamental II", "Ciclo da água", "50 minutos")
        plan = prompts.parse_plan(text, REQUEST)
        assert "Ciclo da água" in plan.title
        assert plan.bncc_codes == ["EF06CI01", "EF06CI02"]

    def test_objective_answers_are_letters(self):
        test = prompts.parse_test(mock_responses.get_test_response("objective", ["Somar frações"]))
        assert len(test.questions) == 5
        assert [q.correct_answer for q in test.questions] == ["A", "B", "C", "D", "A"]
        assert all(len(q.options) == 4 for q in test.questions)

    def test_subjective_has_no_options(self):
        test = prompts.parse_test(mock_responses.get_test_response("subjective", [], count=3))
        assert len(test.questions) == 3
        assert all(q.options is None for q in test.questions)

    def test_grading_response(self):
        assert prompts.parse_grading(mock_responses.get_grading_response(5)).score == "4/5"


class TestModel:
    def test_plan_dict_uses_camel_case(self, sample_plan):
        data = sample_plan.to_dict()
        assert data["planningType"] == "Individual"
        assert data["bnccCodes"] == ["EF06MA07"]
        assert "test" not in data

    def test_plan_with_test_round_trip(self, sample_plan, sample_test):
        plan = sample_plan.with_test(sample_test)
        assert LessonPlan.from_dict(plan.to_dict()) == plan
        assert sample_plan.test is None

    def test_question_without_options(self):
        data = Question(number=1, question="Explique", correct_answer="...").to_dict()
        assert "options" not in data

    def test_duplicate_question_numbers(self):
        with pytest.raises(ValueError):
            Test.from_dict({"questions": [{"number": 1}, {"number": 1}]})

    def test_legacy_snake_case_keys(self):
        plan = LessonPlan.from_dict({"id": "x", "title": "T", "content": "C", "planning_type": "Mensal"})
        assert plan.planning_type == "Mensal"
        assert plan.objectives == []
