"""
Domain service: locate the newest usable satellite scene for a field.

The search trades freshness for availability. It starts from the requested
recency window and cloud ceiling and, while nothing is found, relaxes both
along a fixed ordered policy:

1. (days, cloud) as requested
2. (max(20, days * 3), max(cloud, 80))
3. (60, 90)

The policy is plain data (a list of ``SearchStage``) evaluated by the generic
``try_stages`` combinator, so either part can be tested alone. An upstream
error on any stage aborts the whole search.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Generic, Optional, Sequence, TypeVar

from app.domain.models import SceneReference, SceneSearchResult, SearchStage
from app.infrastructure.stac_client import StacClient

logger = logging.getLogger(__name__)

S = TypeVar("S")
R = TypeVar("R")

FINAL_STAGE = SearchStage(days=60, cloud=90)


def relaxation_stages(days: int, cloud: int) -> list[SearchStage]:
    """Ordered search stages for a requested recency/cloud pair."""
    return [
        SearchStage(days=days, cloud=cloud),
        SearchStage(days=max(20, days * 3), cloud=max(cloud, 80)),
        FINAL_STAGE,
    ]


@dataclass
class StageOutcome(Generic[S, R]):
    """The first stage that produced a result."""
    index: int
    stage: S
    value: R

    @property
    def number(self) -> int:
        return self.index + 1


async def try_stages(
    stages: Sequence[S],
    attempt: Callable[[S], Awaitable[Optional[R]]],
) -> Optional[StageOutcome[S, R]]:
    """
    Evaluate ``attempt`` on each stage in order until one returns a value.

    Returns:
        The first successful outcome, or None once every stage is exhausted.
        Exceptions raised by ``attempt`` propagate immediately.
    """
    for index, stage in enumerate(stages):
        value = await attempt(stage)
        if value is not None:
            return StageOutcome(index=index, stage=stage, value=value)
    return None


class SceneLocator:
    """Finds the latest low-cloud scene over a geometry with staged relaxation."""

    def __init__(
        self,
        stac_client: StacClient,
        policy: Callable[[int, int], list[SearchStage]] = relaxation_stages,
    ):
        self.stac_client = stac_client
        self.policy = policy

    async def find_latest_scene(
        self,
        geometry: dict[str, Any],
        recency_days: int,
        max_cloud_percent: int,
        now: Optional[datetime] = None,
    ) -> Optional[SceneSearchResult]:
        """
        Find the newest scene, relaxing constraints until one is found.

        Args:
            geometry: GeoJSON geometry of the field
            recency_days: Requested recency window in days
            max_cloud_percent: Requested cloud cover ceiling

        Returns:
            SceneSearchResult naming the stage used, or None when no stage
            yields a scene

        Raises:
            UpstreamError: If the catalog fails on any attempted stage
        """
        stages = self.policy(recency_days, max_cloud_percent)

        async def attempt(stage: SearchStage) -> Optional[SceneReference]:
            logger.debug(f"Scene search: days={stage.days} cloud<={stage.cloud}")
            return await self.stac_client.search_latest(
                geometry, stage.days, stage.cloud, now=now
            )

        outcome = await try_stages(stages, attempt)
        if outcome is None:
            logger.info(f"No scene found after {len(stages)} search stages")
            return None

        logger.info(
            f"Scene {outcome.value.item_id} found at stage {outcome.number} "
            f"(days={outcome.stage.days}, cloud<={outcome.stage.cloud})"
        )
        return SceneSearchResult(
            scene=outcome.value,
            stage=outcome.number,
            days=outcome.stage.days,
            cloud=outcome.stage.cloud,
        )
