"""Similarity scoring between a target fingerprint and peer repositories.

Providers compute a raw score and may raise; the scorer turns every per-peer
failure into a zero score so one bad peer never aborts a report.
"""

import logging
import math
from collections.abc import Sequence

from ..config import Config
from ..core.exceptions import OracleError
from ..core.protocols import (
    Fingerprint,
    PeerSubmission,
    ProviderScore,
    RepositoryFetcher,
    SimilarityProvider,
    SimilarityResult,
)
from .fingerprint import DEFAULT_DIMS, fingerprint_repository
from .oracle import OracleSimilarityProvider

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors.

    Returns 0.0 when either vector has zero magnitude, so an all-zero vector
    is dissimilar to everything, itself included.
    """
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = sum(x * x for x in a)
    norm_b = sum(y * y for y in b)
    if not norm_a or not norm_b:
        return 0.0
    return dot / math.sqrt(norm_a * norm_b)


def clamp_score(value: float) -> float:
    """Clamp a score into [0, 1]."""
    return min(1.0, max(0.0, value))


class LocalSimilarityProvider:
    """Fingerprints the peer repository and compares vectors."""

    name = "local"

    def __init__(self, fetcher: RepositoryFetcher, dims: int = DEFAULT_DIMS):
        self.fetcher = fetcher
        self.dims = dims

    async def compare(
        self, target: Fingerprint, target_url: str, peer_url: str
    ) -> ProviderScore:
        peer = await fingerprint_repository(self.fetcher, peer_url, self.dims)
        return ProviderScore(
            similarity=clamp_score(cosine_similarity(target.vector, peer.vector)),
            method=self.name,
        )


class FallbackSimilarityProvider:
    """Tries the primary provider and falls back when it raises OracleError."""

    def __init__(self, primary: SimilarityProvider, fallback: SimilarityProvider):
        self.primary = primary
        self.fallback = fallback
        self.name = f"{primary.name}+{fallback.name}"

    async def compare(
        self, target: Fingerprint, target_url: str, peer_url: str
    ) -> ProviderScore:
        try:
            return await self.primary.compare(target, target_url, peer_url)
        except OracleError as e:
            logger.warning(
                f"{self.primary.name} failed for {peer_url}, using {self.fallback.name}: {e}"
            )
        return await self.fallback.compare(target, target_url, peer_url)


def build_similarity_provider(config: Config, fetcher: RepositoryFetcher) -> SimilarityProvider:
    """Local comparison, preceded by the oracle when an endpoint is configured."""
    local = LocalSimilarityProvider(fetcher, dims=config.vector_dims)
    if not config.oracle_enabled:
        return local

    oracle = OracleSimilarityProvider(
        endpoint=config.similarity_api_url,
        api_key=config.similarity_api_key,
        timeout=config.oracle_timeout,
    )
    return FallbackSimilarityProvider(oracle, local)


class SimilarityScorer:
    """Produces exactly one SimilarityResult per peer, never raising.

    Example:
        scorer = SimilarityScorer(build_similarity_provider(config, fetcher))
        result = await scorer.score(target_fp, target_url, peer)
    """

    def __init__(self, provider: SimilarityProvider):
        self.provider = provider

    async def score(
        self, target: Fingerprint, target_url: str, peer: PeerSubmission
    ) -> SimilarityResult:
        try:
            provider_score = await self.provider.compare(target, target_url, peer.repo_url)
        except Exception as e:
            logger.warning(f"Comparison with {peer.submission_id} ({peer.repo_url}) failed: {e}")
            return SimilarityResult(
                other_submission_id=peer.submission_id,
                other_repo_url=peer.repo_url,
                similarity=0.0,
                method="failed",
                error=str(e),
            )

        similarity = provider_score.similarity
        if not math.isfinite(similarity):
            logger.warning(f"{provider_score.method} returned {similarity} for {peer.submission_id}")
            similarity = 0.0

        return SimilarityResult(
            other_submission_id=peer.submission_id,
            other_repo_url=peer.repo_url,
            similarity=similarity,
            details=provider_score.details,
            method=provider_score.method,
        )
