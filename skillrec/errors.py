"""Exceptions raised by the recommendation engine to its callers."""

from __future__ import annotations


class NotFoundError(Exception):
    """Raised when a referenced record does not exist."""


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"user {user_id} not found")


class SkillNotFoundError(NotFoundError):
    def __init__(self, skill_id: str) -> None:
        self.skill_id = skill_id
        super().__init__(f"skill {skill_id} not found")


class HistoryNotFoundError(NotFoundError):
    def __init__(self, history_id: str, user_id: str) -> None:
        self.history_id = history_id
        self.user_id = user_id
        super().__init__(f"recommendation history {history_id} not found for user {user_id}")


class PersistenceError(Exception):
    """Raised when a write the caller asked for could not be stored."""


class ExplanationUnavailableError(Exception):
    """Raised when an AI explanation could not be produced."""
