"""Repository interfaces consumed by the engine, plus an in-memory implementation.

The engine never walks object graphs: every relation is an id resolved
through one of the lookups below.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from skillrec.constants import FEEDBACK_WINDOW

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from skillrec.models import (
        AssessmentEvent,
        AssessmentScore,
        FeedbackRow,
        HistoryRow,
        RecommendationType,
        Resource,
        Skill,
        User,
    )


@dataclass
class ResourceFilter:
    """Filter for resource lookups. Results are ordered newest first."""

    skill_id: str | None = None
    grade_level: int | None = None
    type: RecommendationType | None = None
    is_ai_generated: bool | None = None
    exclude_ids: set[str] = field(default_factory=set)
    created_before: datetime | None = None
    limit: int | None = None


class ReadRepository(Protocol):
    """Read side of the data store."""

    async def get_user(self, user_id: str) -> User | None: ...

    async def get_skill(self, skill_id: str) -> Skill | None: ...

    async def latest_scores_by_user(self, user_id: str) -> list[AssessmentScore]: ...

    async def score_before(self, user_id: str, skill_id: str, when: datetime) -> AssessmentScore | None: ...

    async def score_after(self, user_id: str, skill_id: str, when: datetime) -> AssessmentScore | None: ...

    async def assessment_events(self, user_id: str, skill_id: str, limit: int) -> list[AssessmentEvent]: ...

    async def get_resource(self, resource_id: str) -> Resource | None: ...

    async def find_resources(self, flt: ResourceFilter) -> list[Resource]: ...

    async def history_for(self, user_id: str, skill_id: str) -> list[HistoryRow]: ...

    async def history_for_resource(self, resource_id: str) -> list[HistoryRow]: ...

    async def history_for_user(self, user_id: str) -> list[HistoryRow]: ...

    async def get_history(self, history_id: str) -> HistoryRow | None: ...

    async def list_history(
        self,
        user_id: str,
        *,
        limit: int | None = None,
        offset: int = 0,
        skill_id: str | None = None,
        completed: bool | None = None,
    ) -> list[HistoryRow]: ...

    async def feedback_for(self, user_id: str, skill_id: str, limit: int = FEEDBACK_WINDOW) -> list[FeedbackRow]: ...

    async def feedback_for_history(self, history_id: str) -> list[FeedbackRow]: ...

    async def feedback_for_user(self, user_id: str, since: datetime | None = None) -> list[FeedbackRow]: ...


class WriteRepository(Protocol):
    """Write side of the data store."""

    async def save_resource(self, resource: Resource) -> Resource: ...

    async def save_history(self, row: HistoryRow) -> HistoryRow: ...

    async def update_history(self, row: HistoryRow) -> HistoryRow: ...

    async def save_feedback(self, row: FeedbackRow) -> FeedbackRow: ...

    async def delete_resources(self, resource_ids: Iterable[str]) -> int: ...


class Repository(ReadRepository, WriteRepository, Protocol):
    """A store offering both sides."""


def _new_id() -> str:
    return str(uuid.uuid4())


class InMemoryRepository:
    """Arena-style store: records live in per-kind dicts keyed by id.

    Used in tests and local runs. Every read returns shallow model copies, so
    assigning fields on a returned record never changes stored state.
    """

    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.skills: dict[str, Skill] = {}
        self.scores: list[AssessmentScore] = []
        self.events: list[AssessmentEvent] = []
        self.resources: dict[str, Resource] = {}
        self.history: dict[str, HistoryRow] = {}
        self.feedback: dict[str, FeedbackRow] = {}

    # -- Seeding --------------------------------------------------------------

    def add_user(self, user: User) -> User:
        self.users[user.id] = user
        return user

    def add_skill(self, skill: Skill) -> Skill:
        self.skills[skill.id] = skill
        return skill

    def add_score(self, score: AssessmentScore) -> AssessmentScore:
        self.scores.append(score)
        return score

    def add_event(self, event: AssessmentEvent) -> AssessmentEvent:
        self.events.append(event)
        return event

    def add_resource(self, resource: Resource) -> Resource:
        if not resource.id:
            resource = resource.model_copy(update={"id": _new_id()})
        self.resources[resource.id] = resource
        return resource

    def add_history(self, row: HistoryRow) -> HistoryRow:
        if not row.id:
            row = row.model_copy(update={"id": _new_id()})
        self.history[row.id] = row
        return row

    def add_feedback(self, row: FeedbackRow) -> FeedbackRow:
        if not row.id:
            row = row.model_copy(update={"id": _new_id()})
        self.feedback[row.id] = row
        return row

    # -- ReadRepository -------------------------------------------------------

    async def get_user(self, user_id: str) -> User | None:
        user = self.users.get(user_id)
        return user.model_copy() if user is not None else None

    async def get_skill(self, skill_id: str) -> Skill | None:
        skill = self.skills.get(skill_id)
        return skill.model_copy() if skill is not None else None

    async def latest_scores_by_user(self, user_id: str) -> list[AssessmentScore]:
        return [s.model_copy() for s in self.scores if s.user_id == user_id]

    async def score_before(self, user_id: str, skill_id: str, when: datetime) -> AssessmentScore | None:
        rows = [s for s in self._scores_for(user_id, skill_id) if s.last_assessed_at < when]
        found = max(rows, key=lambda s: s.last_assessed_at, default=None)
        return found.model_copy() if found is not None else None

    async def score_after(self, user_id: str, skill_id: str, when: datetime) -> AssessmentScore | None:
        rows = [s for s in self._scores_for(user_id, skill_id) if s.last_assessed_at > when]
        found = min(rows, key=lambda s: s.last_assessed_at, default=None)
        return found.model_copy() if found is not None else None

    async def assessment_events(self, user_id: str, skill_id: str, limit: int) -> list[AssessmentEvent]:
        rows = sorted(
            (e for e in self.events if e.user_id == user_id and e.skill_id == skill_id),
            key=lambda e: e.answered_at,
            reverse=True,
        )
        return [e.model_copy() for e in rows[:limit]]

    async def get_resource(self, resource_id: str) -> Resource | None:
        resource = self.resources.get(resource_id)
        return resource.model_copy() if resource is not None else None

    async def find_resources(self, flt: ResourceFilter) -> list[Resource]:
        matches = [r for r in self.resources.values() if _matches(r, flt)]
        matches.sort(key=lambda r: r.created_at, reverse=True)
        if flt.limit is not None:
            matches = matches[: flt.limit]
        return [r.model_copy() for r in matches]

    async def history_for(self, user_id: str, skill_id: str) -> list[HistoryRow]:
        return self._sorted_history(h for h in self.history.values() if h.user_id == user_id and h.skill_id == skill_id)

    async def history_for_resource(self, resource_id: str) -> list[HistoryRow]:
        return self._sorted_history(h for h in self.history.values() if h.resource_id == resource_id)

    async def history_for_user(self, user_id: str) -> list[HistoryRow]:
        return self._sorted_history(h for h in self.history.values() if h.user_id == user_id)

    async def get_history(self, history_id: str) -> HistoryRow | None:
        row = self.history.get(history_id)
        return row.model_copy() if row is not None else None

    async def list_history(
        self,
        user_id: str,
        *,
        limit: int | None = None,
        offset: int = 0,
        skill_id: str | None = None,
        completed: bool | None = None,
    ) -> list[HistoryRow]:
        rows = self._sorted_history(
            h
            for h in self.history.values()
            if h.user_id == user_id
            and (skill_id is None or h.skill_id == skill_id)
            and (completed is None or h.is_completed == completed)
        )
        if limit is None:
            return rows[offset:]
        return rows[offset : offset + limit]

    async def feedback_for(self, user_id: str, skill_id: str, limit: int = FEEDBACK_WINDOW) -> list[FeedbackRow]:
        rows = sorted(
            (f for f in self.feedback.values() if f.user_id == user_id and f.skill_id == skill_id),
            key=lambda f: f.created_at,
            reverse=True,
        )
        return [f.model_copy() for f in rows[:limit]]

    async def feedback_for_history(self, history_id: str) -> list[FeedbackRow]:
        rows = sorted(
            (f for f in self.feedback.values() if f.history_id == history_id),
            key=lambda f: f.created_at,
            reverse=True,
        )
        return [f.model_copy() for f in rows]

    async def feedback_for_user(self, user_id: str, since: datetime | None = None) -> list[FeedbackRow]:
        rows = sorted(
            (
                f
                for f in self.feedback.values()
                if f.user_id == user_id and (since is None or f.created_at >= since)
            ),
            key=lambda f: f.created_at,
        )
        return [f.model_copy() for f in rows]

    # -- WriteRepository ------------------------------------------------------

    async def save_resource(self, resource: Resource) -> Resource:
        return self.add_resource(resource).model_copy()

    async def save_history(self, row: HistoryRow) -> HistoryRow:
        return self.add_history(row).model_copy()

    async def update_history(self, row: HistoryRow) -> HistoryRow:
        if row.id not in self.history:
            msg = f"history {row.id} does not exist"
            raise KeyError(msg)
        self.history[row.id] = row.model_copy()
        return row

    async def save_feedback(self, row: FeedbackRow) -> FeedbackRow:
        return self.add_feedback(row).model_copy()

    async def delete_resources(self, resource_ids: Iterable[str]) -> int:
        deleted = 0
        for rid in set(resource_ids):
            if self.resources.pop(rid, None) is not None:
                deleted += 1
        return deleted

    # -- Helpers --------------------------------------------------------------

    def _scores_for(self, user_id: str, skill_id: str) -> list[AssessmentScore]:
        return [s for s in self.scores if s.user_id == user_id and s.skill_id == skill_id]

    @staticmethod
    def _sorted_history(rows: Iterable[HistoryRow]) -> list[HistoryRow]:
        return [h.model_copy() for h in sorted(rows, key=lambda h: h.created_at, reverse=True)]


def _matches(resource: Resource, flt: ResourceFilter) -> bool:
    if flt.skill_id is not None and flt.skill_id not in resource.skill_ids:
        return False
    if flt.grade_level is not None and resource.grade_level != flt.grade_level:
        return False
    if flt.type is not None and resource.type != flt.type:
        return False
    if flt.is_ai_generated is not None and resource.is_ai_generated != flt.is_ai_generated:
        return False
    if resource.id in flt.exclude_ids:
        return False
    return flt.created_before is None or resource.created_at < flt.created_before
