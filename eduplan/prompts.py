"""
Prompt builders and response parsers for the generation service.

Prompts are in Portuguese because plans are aligned to the BNCC (Base
Nacional Comum Curricular). Every prompt asks for JSON; parsers accept a
bare object or one embedded in surrounding text.
"""

import json
import logging
import re

from eduplan.catalog import TEST_KINDS
from eduplan.errors import GenerationError
from eduplan.models import GradingResult, LessonPlan, Test, new_plan_id

logger = logging.getLogger(__name__)

OBJECTIVE_QUESTION_COUNT = 5
SUBJECTIVE_QUESTION_COUNT = 5


def build_plan_prompt(request):
    """Build the prompt for lesson plan generation."""
    parts = [
        "Você é um especialista em pedagogia e na BNCC.",
        "Crie um plano de aula completo e alinhado à BNCC.",
        "",
        f"Disciplina: {request.subject}",
        f"Ano/Série: {request.grade}",
        f"Conteúdo ou habilidade: {request.topic}",
        f"Duração: {request.duration}",
        f"Tipo de planejamento: {request.planning_type}",
        "",
        "Responda somente com um objeto JSON com as chaves:",
        "- title: título do plano",
        "- content: desenvolvimento da aula, passo a passo",
        "- objectives: lista de objetivos de aprendizagem",
        "- methodology: metodologia utilizada",
        "- resources: lista de recursos necessários",
        "- assessment: como avaliar a aprendizagem",
        "- bnccCodes: lista de códigos de habilidades da BNCC (ex.: EF06MA07)",
    ]
    return "\n".join(parts)


def build_extract_text_prompt():
    return (
        "Transcreva o texto visível nesta imagem. Responda apenas com o texto "
        "transcrito, sem comentários. Se não houver texto, responda vazio."
    )


def build_test_prompt(plan, kind):
    """Build the prompt for test generation from a lesson plan."""
    if kind not in TEST_KINDS:
        raise ValueError(f"Unknown test kind: {kind}")

    parts = [
        f"Crie uma avaliação para o plano de aula \"{plan.title}\".",
        f"Disciplina: {plan.subject}",
        f"Ano/Série: {plan.grade}",
        f"Objetivos: {'; '.join(plan.objectives)}",
        f"Habilidades BNCC: {', '.join(plan.bncc_codes)}",
        "",
    ]
    if kind == "objective":
        parts.append(
            f"Gere {OBJECTIVE_QUESTION_COUNT} questões de múltipla escolha com 4 alternativas cada. "
            "correctAnswer deve ser a letra da alternativa correta (A, B, C ou D)."
        )
    else:
        parts.append(
            f"Gere {SUBJECTIVE_QUESTION_COUNT} questões dissertativas, sem alternativas. "
            "correctAnswer deve trazer a resposta esperada."
        )
    parts.append("")
    parts.append(
        'Responda somente com JSON no formato {"questions": [{"number": 1, '
        '"question": "...", "options": ["..."], "correctAnswer": "..."}]}.'
    )
    return "\n".join(parts)


def build_grading_prompt(test):
    """Build the prompt for grading a photographed answer sheet."""
    answer_key = "\n".join(f"Q{q.number}: {q.correct_answer}" for q in test.questions)
    return "\n".join(
        [
            "A imagem mostra as respostas de um aluno para a avaliação abaixo.",
            "Compare com o gabarito e corrija.",
            "",
            "Gabarito:",
            answer_key,
            "",
            'Responda somente com JSON: {"score": "nota, ex.: 4/5", '
            '"feedback": "comentário curto para o aluno"}.',
        ]
    )


def parse_json_object(response_text):
    """Parse a JSON object from a model response, or return None."""
    if not response_text:
        return None
    try:
        data = json.loads(response_text)
        if isinstance(data, dict):
            return data
    except (json.JSONDecodeError, ValueError):
        pass

    match = re.search(r"\{.*\}", response_text, re.DOTALL)
    if match:
        try:
            data = json.loads(match.group())
            if isinstance(data, dict):
                return data
        except (json.JSONDecodeError, ValueError):
            pass

    logger.warning("Failed to parse JSON object from model response")
    return None


def parse_plan(response_text, request):
    """Turn a plan response into a LessonPlan.

    Fields the request already knows (subject, grade, planning type) come
    from the request, not from the model.

    Raises:
        GenerationError: if the response holds no usable plan.
    """
    data = parse_json_object(response_text)
    if not data or not data.get("content"):
        raise GenerationError("Plan response missing content")

    data = dict(data)
    data["id"] = data.get("id") or new_plan_id()
    data["subject"] = request.subject
    data["grade"] = request.grade
    data["planningType"] = request.planning_type
    data.setdefault("title", f"Plano de Aula: {request.topic}")
    data.pop("test", None)
    try:
        return LessonPlan.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise GenerationError(f"Plan response malformed: {e}") from e


def parse_test(response_text):
    """Turn a test response into a Test; questions are renumbered 1..n."""
    data = parse_json_object(response_text)
    if not data or not data.get("questions"):
        raise GenerationError("Test response has no questions")

    questions = []
    for i, q in enumerate(data["questions"], start=1):
        if not isinstance(q, dict):
            raise GenerationError("Test response malformed: question is not an object")
        questions.append(dict(q, number=i))
    try:
        return Test.from_dict({"questions": questions})
    except (KeyError, TypeError, ValueError) as e:
        raise GenerationError(f"Test response malformed: {e}") from e


def parse_grading(response_text):
    data = parse_json_object(response_text)
    if not data or "score" not in data:
        raise GenerationError("Grading response missing score")
    return GradingResult(score=str(data["score"]), feedback=str(data.get("feedback", "")))
