"""
Registration uniqueness guard.

Stops one physical person from being enrolled under two names. The scan walks
identities in store order and reports the first sample inside the threshold,
not necessarily the closest one.
"""
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from utils.config import config
from utils.logger import logger
from .distance import EmbeddingLike, as_embedding, euclidean_distance, similarity_percent
from .identity_store import Identity, IdentityStore


@dataclass(frozen=True)
class NoMatch:
    """The candidate face is not close to any enrolled sample."""
    is_already_registered: bool = False


@dataclass(frozen=True)
class AlreadyRegistered:
    """The candidate face is within the uniqueness threshold of an enrolled identity."""
    name: str
    similarity_percent: int
    distance: float
    is_already_registered: bool = True


MatchResult = Union[NoMatch, AlreadyRegistered]


def check_uniqueness(candidate: EmbeddingLike, identities: Iterable[Identity],
                     threshold: float = 0.45) -> MatchResult:
    """Return the first enrolled identity holding a sample closer than ``threshold``."""
    candidate = as_embedding(candidate)

    for identity in identities:
        for stored in identity.embeddings:
            distance = euclidean_distance(candidate, stored)
            if distance < threshold:
                return AlreadyRegistered(
                    name=identity.name,
                    similarity_percent=similarity_percent(distance),
                    distance=distance
                )

    return NoMatch()


class UniquenessGuard:
    """Checks candidate faces against an identity store with the configured threshold."""

    def __init__(self, store: IdentityStore, threshold: Optional[float] = None):
        self.store = store
        self.threshold = threshold if threshold is not None else config.matching.uniqueness_threshold

    def check(self, candidate: EmbeddingLike) -> MatchResult:
        result = check_uniqueness(candidate, self.store.list_identities(), self.threshold)
        if isinstance(result, AlreadyRegistered):
            logger.debug(
                f"Candidate matches '{result.name}' at distance {result.distance:.3f} "
                f"({result.similarity_percent}%)"
            )
        return result
