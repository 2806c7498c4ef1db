"""
services/ordering.py

응시별 화면 순서 계산 (QuestionOrderingResolver).
Test + Attempt의 순수 함수 — 클라이언트 측 난수 없음.
순서 정보가 비었거나 깨져 있으면 예외 대신 canonical 순서로 물러난다.
"""

from typing import List, Optional

from quizmaster.models.attempt import Attempt
from quizmaster.models.quiz_model import Question, Test


def display_questions(test: Test, attempt: Optional[Attempt]) -> List[Question]:
    """
    화면 순서 문항 리스트.

    attempt.question_order가 시험의 문항 전체를 정확히 가리킬 때만 그 순서를 쓴다.
    길이 불일치, 모르는 ID, 중복이 있으면 canonical 순서.
    """
    order = attempt.question_order if attempt else None
    if not order:
        return list(test.questions)

    by_id = {q.id: q for q in test.questions}
    ordered = [by_id[qid] for qid in order if qid in by_id]
    if len(ordered) != len(test.questions) or len({q.id for q in ordered}) != len(ordered):
        return list(test.questions)
    return ordered


def valid_permutation(perm: Optional[List[int]], option_count: int) -> Optional[List[int]]:
    """perm이 0..option_count-1의 순열이면 그대로, 아니면 None. 화면과 채점이 같은 규칙을 쓴다."""
    if not perm or len(perm) != option_count:
        return None
    if sorted(perm) != list(range(option_count)):
        return None
    return perm


def option_permutation(question: Question, attempt: Optional[Attempt]) -> Optional[List[int]]:
    """적용 가능한 보기 순열. 없거나 유효하지 않으면 None."""
    if attempt is None or not attempt.option_orders:
        return None
    return valid_permutation(attempt.option_orders.get(question.id), len(question.options))


def display_options(question: Question, attempt: Optional[Attempt]) -> List[str]:
    """display[i] = original[perm[i]]. 순열이 없으면 canonical 그대로."""
    perm = option_permutation(question, attempt)
    if perm is None:
        return list(question.options)
    return [question.options[i] for i in perm]
