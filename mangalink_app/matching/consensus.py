"""
Chapter count consensus.

Providers disagree on how many chapters a work has (missing uploads, split
chapters, extras). Each resolved instance's chapter list is fetched on demand
and the most common count wins. When fewer than 60% of providers agree and
there are at least three of them, the median cluster is used instead.
"""

import asyncio
import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sources import ProviderRegistry
from sources.base import ProviderError
from ..reader.models import SourceInstance

logger = logging.getLogger(__name__)

LOW_CONFIDENCE = 60
MIN_CLUSTER_SOURCES = 3
CLUSTER_RATIO = 0.6


@dataclass
class ConsensusResult:
    count: int = 0
    confidence: int = 0
    counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {'count': self.count, 'confidence': self.confidence, 'sources': dict(self.counts)}


def calculate_consensus(counts: List[int]) -> ConsensusResult:
    """Most common count and the share of sources agreeing with it (0-100)."""
    if not counts:
        return ConsensusResult()
    if len(counts) == 1:
        return ConsensusResult(count=counts[0], confidence=100)

    tally = Counter(counts)
    freq = max(tally.values())
    # Ties go to the smallest count
    consensus_count = min(count for count, seen in tally.items() if seen == freq)
    confidence = round(freq / len(counts) * 100)

    if confidence < LOW_CONFIDENCE and len(counts) >= MIN_CLUSTER_SOURCES:
        ordered = sorted(counts)
        median = ordered[len(ordered) // 2]
        tolerance = max(5, int(median * 0.1))
        cluster = [c for c in ordered if abs(c - median) <= tolerance]

        if len(cluster) >= math.ceil(len(counts) * CLUSTER_RATIO):
            return ConsensusResult(
                count=cluster[len(cluster) // 2],
                confidence=round(len(cluster) / len(counts) * 100),
            )

    return ConsensusResult(count=consensus_count, confidence=confidence)


class ChapterConsensus:
    """Fetches chapter lists for resolved instances and agrees on a count."""

    def __init__(self, registry: ProviderRegistry, max_sources: int = 5):
        self.registry = registry
        self.max_sources = max_sources

    async def _count(self, instance: SourceInstance) -> Optional[int]:
        provider = self.registry.get_provider(instance.provider_name)
        if provider is None:
            return None
        try:
            chapters = await provider.get_chapters(instance.ref)
        except ProviderError as e:
            provider.record_failure(str(e))
            logger.warning(f"Chapter count failed for {instance.provider_name}: {e}")
            return None
        return len(chapters) or None

    async def get_consensus(self, instances: Dict[str, SourceInstance]) -> ConsensusResult:
        selected = list(instances.values())[:self.max_sources]
        counts = await asyncio.gather(*(self._count(i) for i in selected))

        per_source = {
            instance.provider_name: count
            for instance, count in zip(selected, counts)
            if count
        }
        result = calculate_consensus(list(per_source.values()))
        result.counts = per_source

        logger.info(f"Chapter count consensus: {result.count} (confidence {result.confidence}%)")
        return result
