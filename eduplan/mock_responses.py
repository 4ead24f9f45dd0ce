"""
Mock generation responses for cost-free development.

This module provides fabricated but realistic responses shaped exactly like
the JSON the real service returns, so the parsing path is exercised without
making external calls.
"""

import json
from typing import List

# Sample BNCC codes per subject, used to make mock plans look plausible
BNCC_SAMPLES = {
    "Matemática": ["EF06MA07", "EF06MA08"],
    "Português": ["EF67LP28", "EF69LP44"],
    "História": ["EF08HI06"],
    "Geografia": ["EF06GE04"],
    "Ciências": ["EF06CI01", "EF06CI02"],
}

MOCK_EXTRACTED_TEXT = "Frações: conceito, representação e comparação"


def get_plan_response(subject: str, grade: str, topic: str, duration: str) -> str:
    """
    Generate a mock lesson plan response.

    Returns:
        JSON string with the plan keys the real service returns
    """
    topic = topic.strip() or "Tema livre"
    response = {
        "title": f"{topic} ({subject})",
        "content": (
            f"1. Acolhida e levantamento de conhecimentos prévios sobre {topic}.\n"
            f"2. Exposição dialogada com exemplos do cotidiano.\n"
            f"3. Atividade em duplas.\n"
            f"4. Socialização e síntese. Duração total: {duration}."
        ),
        "objectives": [
            f"Compreender os conceitos centrais de {topic}.",
            f"Aplicar {topic} em situações do cotidiano.",
        ],
        "methodology": f"Aula expositiva dialogada e atividade colaborativa para {grade}.",
        "resources": ["Quadro branco", "Caderno", "Material impresso"],
        "assessment": "Observação da participação e correção da atividade em duplas.",
        "bnccCodes": BNCC_SAMPLES.get(subject, ["EF00XX00"]),
    }
    return json.dumps(response, ensure_ascii=False, indent=2)


def get_test_response(kind: str, objectives: List[str], count: int = 5) -> str:
    """
    Generate a mock test response.

    Objective tests get four options per question and a letter answer;
    subjective tests get open questions with an expected answer.
    """
    focus = objectives[0] if objectives else "o conteúdo da aula"
    questions = []
    for i in range(1, count + 1):
        if kind == "objective":
            questions.append(
                {
                    "number": i,
                    "question": f"Questão {i}: qual alternativa está correta sobre {focus}?",
                    "options": ["Alternativa A", "Alternativa B", "Alternativa C", "Alternativa D"],
                    "correctAnswer": "ABCD"[(i - 1) % 4],
                }
            )
        else:
            questions.append(
                {
                    "number": i,
                    "question": f"Questão {i}: explique com suas palavras {focus}.",
                    "correctAnswer": "Resposta pessoal que demonstre compreensão do conceito.",
                }
            )
    return json.dumps({"questions": questions}, ensure_ascii=False, indent=2)


def get_grading_response(question_count: int) -> str:
    correct = max(question_count - 1, 0)
    return json.dumps(
        {
            "score": f"{correct}/{question_count}",
            "feedback": "Bom trabalho! Revise a última questão.",
        },
        ensure_ascii=False,
    )
