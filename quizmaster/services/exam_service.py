"""
services/exam_service.py

채점 및 결과 요약 비즈니스 로직 (서버 측 의미론).
클라이언트는 절대 자기 채점을 하지 않는다 — 이 모듈은 InMemoryBackend가
submit_test_result RPC와 같은 방식으로 채점할 때 사용한다.
순수 Python 함수로 구성 — UI 코드, 전역 상태 변경 없음.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel

from quizmaster.models.quiz_model import Question
from quizmaster.models.session_state import UNANSWERED
from quizmaster.services.ordering import valid_permutation


class GradedAnswer(BaseModel):
    question_id: str
    display_answer: int
    canonical_answer: int
    is_correct: bool


class GradeReport(BaseModel):
    score: int
    total_questions: int
    answers: List[GradedAnswer]

    @property
    def percentage(self) -> float:
        return calculate_score(self.score, self.total_questions)


def to_canonical(display_answer: int, permutation: Optional[List[int]]) -> int:
    """
    화면 순서 보기 인덱스 → canonical 인덱스.

    permutation[i]는 화면 i번째 보기의 원래 인덱스다.
    미응답(-1)이거나 범위를 벗어나면 -1.
    """
    if display_answer == UNANSWERED or display_answer < 0:
        return UNANSWERED
    if not permutation:
        return display_answer
    if display_answer >= len(permutation):
        return UNANSWERED
    return permutation[display_answer]


def grade_answers(
    questions: List[Question],
    option_orders: Dict[str, List[int]],
    answers: List[int],
) -> GradeReport:
    """
    화면 순서 답안을 채점한다.

    Args:
        questions:     화면 순서로 나열된 문항
        option_orders: 문항 ID → 보기 순열
        answers:       화면 순서 답안 벡터 (len == len(questions))

    Raises:
        ValueError: 답안 길이가 문항 수와 다를 때
    """
    if len(answers) != len(questions):
        raise ValueError(
            f"Expected {len(questions)} answers, got {len(answers)}."
        )

    graded: List[GradedAnswer] = []
    for q, display_answer in zip(questions, answers):
        # 화면이 canonical 순서로 물러났다면 채점도 같은 순서로 본다
        perm = valid_permutation(option_orders.get(q.id), len(q.options))
        canonical = to_canonical(display_answer, perm)
        graded.append(GradedAnswer(
            question_id=q.id,
            display_answer=display_answer,
            canonical_answer=canonical,
            is_correct=canonical == q.correct_answer,
        ))

    return GradeReport(
        score=sum(1 for g in graded if g.is_correct),
        total_questions=len(questions),
        answers=graded,
    )


def calculate_score(correct: int, total: int) -> float:
    """100점 만점 환산 (소수점 둘째 자리 반올림). total이 0이면 0.0."""
    if not total:
        return 0.0
    return round(correct / total * 100, 2)
