"""
Deterministic k-bucketing of same-topic question variants.

Items are grouped by problem type, ordered by the SHA-256 hex digest of
``seed:group`` (groups) and ``seed:group:item_id`` (items), round-robin
interleaved across groups, then dealt into K buckets by position mod K.
"""
import hashlib
import logging
from dataclasses import dataclass

from pydantic import Field

from qticraft.core.errors import BucketingError
from qticraft.models.assessment import AssessmentTestInput
from qticraft.models.geometry import StrictModel

logger = logging.getLogger("qticraft.bucketer")


class BucketItem(StrictModel):
    id: str = Field(min_length=1)
    problemType: str


@dataclass(frozen=True)
class BucketResult:
    seed: str
    k_requested: int
    buckets: list[list[str]]

    @property
    def k_actual(self) -> int:
        return len(self.buckets)


def _digest(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def _interleave(groups: list[list[BucketItem]]) -> list[BucketItem]:
    merged: list[BucketItem] = []
    depth = max((len(g) for g in groups), default=0)
    for i in range(depth):
        for group in groups:
            if i < len(group):
                merged.append(group[i])
    return merged


def build_deterministic_k_buckets(seed: str, items: list[BucketItem], k: int) -> BucketResult:
    """Partition ``items`` into min(k, len(items)) non-empty, diversity-balanced buckets."""
    if k < 1:
        raise ValueError(f"k must be at least 1, got {k}")
    ids = [item.id for item in items]
    if len(set(ids)) != len(ids):
        raise ValueError("item ids must be unique")

    k_actual = min(k, len(items))
    if k_actual == 0:
        return BucketResult(seed=seed, k_requested=k, buckets=[])

    by_type: dict[str, list[BucketItem]] = {}
    for item in items:
        by_type.setdefault(item.problemType, []).append(item)

    group_keys = sorted(by_type, key=lambda g: (_digest(f"{seed}:{g}"), g))
    groups = [
        sorted(by_type[g], key=lambda it, g=g: (_digest(f"{seed}:{g}:{it.id}"), it.id))
        for g in group_keys
    ]
    merged = _interleave(groups)

    buckets: list[list[str]] = [[] for _ in range(k_actual)]
    for position, item in enumerate(merged):
        buckets[position % k_actual].append(item.id)

    for i, bucket in enumerate(buckets):
        if not bucket:
            raise BucketingError(f"bucket {i} of {k_actual} is empty")

    logger.info(
        "bucketed %d items across %d problem types into %d buckets (requested %d)",
        len(items), len(groups), k_actual, k,
    )
    return BucketResult(seed=seed, k_requested=k, buckets=buckets)


def buckets_to_test(identifier: str, title: str, result: BucketResult) -> AssessmentTestInput:
    """One hidden section per bucket, ready for ``compile_test``."""
    return AssessmentTestInput(identifier=identifier, title=title, sections=result.buckets)
