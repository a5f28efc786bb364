from __future__ import annotations

from collections.abc import Iterable

from exam_assistance.api.schemas import ANSWER_LABELS, AnswerPick


class AnswerSelection:
    """Selected label per question of one session; ``None`` means unanswered."""

    def __init__(self, question_ids: Iterable[str]) -> None:
        self._labels: dict[str, str | None] = {str(qid): None for qid in question_ids}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def total(self) -> int:
        return len(self._labels)

    def freeze(self) -> None:
        self._frozen = True

    def set_answer(self, question_id: str, label: str) -> bool:
        if self._frozen:
            return False
        if question_id not in self._labels:
            raise KeyError(question_id)
        label = str(label).strip().upper()
        if label not in ANSWER_LABELS:
            raise ValueError(f"invalid answer label: {label}")
        self._labels[question_id] = label
        return True

    def get(self, question_id: str) -> str | None:
        return self._labels.get(question_id)

    def answered_count(self) -> int:
        return sum(1 for label in self._labels.values() if label is not None)

    def unanswered_count(self) -> int:
        return self.total - self.answered_count()

    def is_complete(self) -> bool:
        return self.answered_count() == self.total

    def picks(self) -> list[AnswerPick]:
        return [
            AnswerPick(question_id=qid, selected_label=label)
            for qid, label in self._labels.items()
            if label is not None
        ]

    def as_dict(self) -> dict[str, str | None]:
        return dict(self._labels)

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._labels
