"""
discovery/routes.py - Candidate cycle generation.

For hop counts 2..max_hops, enumerate ordered permutations of candidate
intermediate assets between the source asset and itself:

    hops=2: SOL -> X -> SOL            (pool: first max_candidates)
    hops=3: SOL -> X -> Y -> SOL       (pool: top hop_pool_sizes[3])
    hops=4: SOL -> X -> Y -> Z -> SOL  (pool: top hop_pool_sizes[4])

Deeper tiers use strictly smaller pools; combination count grows as
n!/(n-k)!. Output is deterministic for identical inputs.
"""

from itertools import permutations
from typing import Callable, Iterable

from core.constants import DEFAULT_HOP_POOL_SIZES, DEFAULT_MAX_CANDIDATES
from core.logging import get_logger
from core.models import Cycle

logger = get_logger(__name__)


class RouteGenerator:
    """Builds cycles from a ranked candidate list."""

    def __init__(
        self,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
        hop_pool_sizes: dict[int, int] | None = None,
    ):
        self.max_candidates = max_candidates
        self.hop_pool_sizes = dict(
            DEFAULT_HOP_POOL_SIZES if hop_pool_sizes is None else hop_pool_sizes
        )

    def pool_size(self, hops: int) -> int:
        """
        Candidate pool size for a hop tier.

        Unconfigured tiers shrink by half from the previous tier; configured
        values that would not shrink are clamped to previous - 1.
        """
        size = self.max_candidates
        for tier in range(3, hops + 1):
            configured = self.hop_pool_sizes.get(tier, size // 2)
            size = max(0, min(configured, size - 1))
        return size

    def generate(
        self,
        source_asset: str,
        candidates: Iterable[str],
        max_hops: int,
        is_blacklisted: Callable[[str], bool] | None = None,
    ) -> list[Cycle]:
        """
        Args:
            source_asset: Asset every cycle starts and ends at
            candidates: Ranked intermediate assets (best first)
            max_hops: Deepest tier to generate (>= 2)
            is_blacklisted: Optional predicate to exclude assets

        Returns:
            Cycles ordered by hop count, then candidate rank
        """
        pool: list[str] = []
        seen: set[str] = {source_asset}
        for asset in candidates:
            if asset in seen:
                continue
            seen.add(asset)
            if is_blacklisted is not None and is_blacklisted(asset):
                continue
            pool.append(asset)

        cycles: list[Cycle] = []
        per_tier: dict[str, int] = {}
        for hops in range(2, max_hops + 1):
            tier_pool = pool[: self.pool_size(hops)]
            count = 0
            for middle in permutations(tier_pool, hops - 1):
                cycles.append(Cycle((source_asset, *middle, source_asset)))
                count += 1
            per_tier[f"{hops}-hop"] = count

        logger.info(
            f"Generated {len(cycles)} routes from {len(pool)} candidates",
            extra={"context": per_tier},
        )
        return cycles
