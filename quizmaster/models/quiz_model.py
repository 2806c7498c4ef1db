"""
models/quiz_model.py

시험(Test) / 문항(Question) 모델.
Pydantic v2 적용 — 외부 DB 행(row)과 앱 내부 표현 사이의 변환 담당.
"""

import math
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class Question(BaseModel):
    """
    객관식 문항 모델.
    correct_answer는 저장소 기준(canonical) 인덱스이며, 화면 순서와는 무관하다.
    """
    id: str = Field(
        ...,
        description="문항 ID (DB uuid)"
    )
    question: str = Field(
        ...,
        min_length=1,
        description="발문"
    )
    options: List[str] = Field(
        ...,
        description="보기 리스트 (canonical 순서)"
    )
    correct_answer: int = Field(
        0,
        ge=0,
        description="정답 보기의 canonical 인덱스 (0-based)"
    )

    @field_validator('options')
    @classmethod
    def validate_options_length(cls, v: List[str]) -> List[str]:
        """보기는 최소 2개 이상이어야 한다."""
        if len(v) < 2:
            raise ValueError("A question needs at least two options.")
        return v

    @model_validator(mode='after')
    def validate_answer_in_range(self) -> 'Question':
        """정답 인덱스는 보기 범위 안에 있어야 한다."""
        if self.correct_answer >= len(self.options):
            raise ValueError(
                f"correct_answer {self.correct_answer} is out of range for {len(self.options)} options."
            )
        return self


class Test(BaseModel):
    """
    응시 중에는 변하지 않는 시험 엔티티.

    duration은 분 단위, time_per_question은 초 단위.
    작성 화면은 duration = ceil(문항 수 * time_per_question / 60) 으로 올림 저장하므로
    time_per_question이 저장되어 있으면 그것을 우선한다.
    """
    __test__ = False  # pytest 수집 대상 아님

    id: str
    title: str = ""
    description: str = ""
    duration: int = Field(..., gt=0, description="전체 제한 시간 (분)")
    time_per_question: Optional[int] = Field(
        None,
        gt=0,
        description="문항당 제한 시간 (초). 없으면 duration에서 역산"
    )
    questions: List[Question] = Field(default_factory=list)
    is_active: bool = True
    start_date: datetime
    end_date: datetime
    created_by: str = ""

    @property
    def total_seconds(self) -> int:
        return self.duration * 60

    def seconds_per_question(self) -> int:
        """저장값 우선, 없으면 floor(duration*60 / 문항 수)."""
        if self.time_per_question:
            return self.time_per_question
        if not self.questions:
            return self.total_seconds
        return self.total_seconds // len(self.questions)

    @staticmethod
    def duration_for(question_count: int, time_per_question: int) -> int:
        """작성 화면 규칙: 총 시간(분)은 올림."""
        return max(1, math.ceil(question_count * time_per_question / 60))

    @classmethod
    def from_row(cls, row: dict) -> 'Test':
        """
        tests 행 + 내장 questions 행을 Test로 변환.
        questions는 order_index 오름차순으로 정렬한다.
        """
        question_rows = sorted(
            row.get("questions") or [],
            key=lambda q: q.get("order_index", 0),
        )
        return cls(
            id=str(row["id"]),
            title=row.get("title") or "",
            description=row.get("description") or "",
            duration=row["duration"],
            time_per_question=row.get("time_per_question"),
            questions=[
                Question(
                    id=str(q["id"]),
                    question=q["question_text"],
                    options=q["options"],
                    correct_answer=q.get("correct_answer", 0),
                )
                for q in question_rows
            ],
            is_active=row.get("is_active", True),
            start_date=row["start_date"],
            end_date=row["end_date"],
            created_by=str(row.get("created_by") or ""),
        )
