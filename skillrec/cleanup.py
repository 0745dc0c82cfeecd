"""Sweep of stale AI-generated resources."""

from __future__ import annotations

from collections import defaultdict
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import structlog

from skillrec.constants import AI_RESOURCE_MAX_AGE_DAYS, MAX_AI_RESOURCES_PER_SKILL
from skillrec.repository import ResourceFilter

if TYPE_CHECKING:
    from skillrec.models import Resource
    from skillrec.repository import Repository

logger = structlog.get_logger()


async def sweep_ai_resources(
    repository: Repository,
    now: datetime | None = None,
    *,
    max_per_skill: int = MAX_AI_RESOURCES_PER_SKILL,
    max_age_days: int = AI_RESOURCE_MAX_AGE_DAYS,
) -> int:
    """Delete the oldest stale AI resources of skills holding more than *max_per_skill*.

    Only resources older than *max_age_days* are candidates. A resource linked
    to several skills is deleted only if every one of them stays at or above
    *max_per_skill* afterwards, so no skill is taken below the cap. Returns the
    number of resources deleted.
    """
    now = now or datetime.now(UTC)
    cutoff = now - timedelta(days=max_age_days)
    stale = await repository.find_resources(ResourceFilter(is_ai_generated=True, created_before=cutoff))

    by_skill: dict[str, list[Resource]] = defaultdict(list)
    for resource in stale:
        for skill_id in resource.skill_ids:
            by_skill[skill_id].append(resource)

    # Live AI resource count per skill, kept current as victims are chosen.
    counts: dict[str, int] = {}
    for skill_id in by_skill:
        counts[skill_id] = len(await repository.find_resources(ResourceFilter(skill_id=skill_id, is_ai_generated=True)))

    deleted: set[str] = set()
    for skill_id, old in by_skill.items():
        victims: list[Resource] = []
        for resource in sorted(old, key=lambda r: r.created_at):
            if counts[skill_id] <= max_per_skill:
                break
            if resource.id in deleted:
                continue
            linked = set(resource.skill_ids)
            if any(counts[s] <= max_per_skill for s in linked):
                logger.debug("kept shared ai resource", resource_id=resource.id, skill_ids=sorted(linked))
                continue
            victims.append(resource)
            deleted.add(resource.id)
            for s in linked:
                counts[s] -= 1
        if not victims:
            continue
        removed = await repository.delete_resources(r.id for r in victims)
        logger.info("cleaned up stale ai resources", skill_id=skill_id, deleted=removed, kept=counts[skill_id])

    return len(deleted)
