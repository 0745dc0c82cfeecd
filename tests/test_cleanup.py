"""Tests for the stale AI resource sweep."""

from __future__ import annotations

from skillrec.cleanup import sweep_ai_resources
from skillrec.models import RecommendationType, Resource
from skillrec.repository import InMemoryRepository
from tests.conftest import NOW, days_ago


def _ai(repo: InMemoryRepository, rid: str, age_days: float, skill_ids: list[str] | None = None) -> None:
    repo.add_resource(
        Resource(
            id=rid,
            title=rid,
            type=RecommendationType.INTERACTIVE,
            grade_level=5,
            skill_ids=skill_ids or ["fractions"],
            is_ai_generated=True,
            created_at=days_ago(age_days),
        )
    )


def _ai_ids(repo: InMemoryRepository) -> set[str]:
    return {r.id for r in repo.resources.values() if r.is_ai_generated}


async def test_removes_oldest_stale_beyond_cap() -> None:
    """12 resources with 5 stale: the 2 oldest stale ones go, 10 remain."""
    repo = InMemoryRepository()
    for i in range(7):
        _ai(repo, f"fresh-{i}", i + 1)
    for i in range(5):
        _ai(repo, f"stale-{i}", 100 + i)

    deleted = await sweep_ai_resources(repo, NOW)

    assert deleted == 2
    assert len(_ai_ids(repo)) == 10
    assert not {"stale-3", "stale-4"} & _ai_ids(repo)


async def test_never_drops_below_cap() -> None:
    """A skill with exactly the cap keeps everything, however old."""
    repo = InMemoryRepository()
    for i in range(10):
        _ai(repo, f"stale-{i}", 200 + i)

    assert await sweep_ai_resources(repo, NOW) == 0
    assert len(_ai_ids(repo)) == 10


async def test_only_stale_resources_are_candidates() -> None:
    """Fresh resources are never deleted, even when the skill is over the cap."""
    repo = InMemoryRepository()
    for i in range(12):
        _ai(repo, f"fresh-{i}", i + 1)
    _ai(repo, "stale", 120)

    assert await sweep_ai_resources(repo, NOW) == 1
    assert "stale" not in _ai_ids(repo)
    assert len(_ai_ids(repo)) == 12


async def test_standard_resources_are_untouched() -> None:
    repo = InMemoryRepository()
    repo.add_resource(
        Resource(
            id="std",
            title="std",
            type=RecommendationType.PRACTICE,
            grade_level=5,
            skill_ids=["fractions"],
            created_at=days_ago(400),
        )
    )
    for i in range(11):
        _ai(repo, f"ai-{i}", 100 + i)

    assert await sweep_ai_resources(repo, NOW) == 1
    assert "std" in repo.resources


async def test_shared_resource_is_deleted_once() -> None:
    """A resource linked to two skills counts toward both and is deleted only once."""
    repo = InMemoryRepository()
    _ai(repo, "shared", 300, ["fractions", "decimals"])
    for skill_id in ("fractions", "decimals"):
        for i in range(10):
            _ai(repo, f"{skill_id}-{i}", 100 + i, [skill_id])

    deleted = await sweep_ai_resources(repo, NOW)

    assert deleted == 1
    assert "shared" not in repo.resources
    assert len(_ai_ids(repo)) == 20


async def test_custom_limits() -> None:
    repo = InMemoryRepository()
    for i in range(4):
        _ai(repo, f"r-{i}", 10 + i)

    assert await sweep_ai_resources(repo, NOW, max_per_skill=2, max_age_days=5) == 2
    assert _ai_ids(repo) == {"r-0", "r-1"}


async def test_shared_resource_kept_when_other_skill_is_at_cap() -> None:
    """Deleting a shared resource must not take its other skill below the cap."""
    repo = InMemoryRepository()
    _ai(repo, "shared", 300, ["fractions", "decimals"])
    for i in range(10):
        _ai(repo, f"fractions-{i}", 100 + i, ["fractions"])
    for i in range(9):
        _ai(repo, f"decimals-{i}", 100 + i, ["decimals"])

    deleted = await sweep_ai_resources(repo, NOW)

    assert deleted == 1
    assert "shared" in repo.resources
    assert "fractions-9" not in repo.resources
    remaining = list(repo.resources.values())
    assert sum(1 for r in remaining if "decimals" in r.skill_ids) == 10
    assert sum(1 for r in remaining if "fractions" in r.skill_ids) == 10
