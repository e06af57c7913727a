"""
Proactive question queue.

Questions are deduped by text and kept sorted by priority (highest
first). check-proactive-prompts sends at most one per cycle.
"""

import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime

logger = logging.getLogger(__name__)

MAX_ASKED = 50


@dataclass
class Question:
    id: str
    text: str
    category: str
    priority: int
    created_at: str
    asked: bool = False
    asked_at: str | None = None


class QuestionQueue:
    def __init__(self, items: list[Question] | None = None):
        self._items: list[Question] = list(items or [])

    def enqueue(self, text: str, category: str, priority: int, now: datetime) -> Question | None:
        """Add a question. Returns None if the same text is already queued."""
        if any(q.text == text for q in self._items):
            return None
        question = Question(
            id=f"q_{uuid.uuid4().hex[:10]}",
            text=text,
            category=category,
            priority=priority,
            created_at=now.isoformat(),
        )
        self._items.append(question)
        # stable sort: equal priorities stay first-come first-served
        self._items.sort(key=lambda q: -q.priority)
        logger.debug(f"Queued question ({category}, p{priority}): {text}")
        return question

    def current(self) -> Question | None:
        for q in self._items:
            if not q.asked:
                return q
        return None

    def pending(self) -> list[Question]:
        return [q for q in self._items if not q.asked]

    def mark_asked(self, question_id: str, now: datetime) -> None:
        for q in self._items:
            if q.id == question_id:
                q.asked = True
                q.asked_at = now.isoformat()
        asked = [q for q in self._items if q.asked]
        if len(asked) > MAX_ASKED:
            asked.sort(key=lambda q: q.asked_at or "")
            drop = {q.id for q in asked[: len(asked) - MAX_ASKED]}
            self._items = [q for q in self._items if q.id not in drop]

    def __len__(self) -> int:
        return len(self._items)

    def to_list(self) -> list[dict]:
        return [asdict(q) for q in self._items]

    @classmethod
    def from_list(cls, data: list[dict] | None) -> "QuestionQueue":
        items = []
        for d in data or []:
            try:
                items.append(Question(**d))
            except TypeError:
                logger.warning(f"Dropping malformed queued question: {d!r}")
        return cls(items)
