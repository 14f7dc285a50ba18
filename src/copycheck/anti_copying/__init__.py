"""Repository similarity detection.

Key components:
- fingerprint: Content digest and feature vector of a repository snapshot
- similarity: Cosine scoring, provider fallback chain and per-peer isolation
- oracle: Client for an external similarity service
- detector: Report pipeline for one submission against its event peers
"""

from .detector import PlagiarismDetector, get_detector, rank_results, run_plagiarism_check
from .fingerprint import (
    compute_digest,
    compute_fingerprint,
    digest_to_vector,
    fingerprint_repository,
)
from .oracle import OracleSimilarityProvider
from .similarity import (
    FallbackSimilarityProvider,
    LocalSimilarityProvider,
    SimilarityScorer,
    build_similarity_provider,
    cosine_similarity,
)

__all__ = [
    # Fingerprinting
    "compute_digest",
    "compute_fingerprint",
    "digest_to_vector",
    "fingerprint_repository",
    # Similarity
    "cosine_similarity",
    "LocalSimilarityProvider",
    "OracleSimilarityProvider",
    "FallbackSimilarityProvider",
    "SimilarityScorer",
    "build_similarity_provider",
    # Pipeline
    "PlagiarismDetector",
    "get_detector",
    "rank_results",
    "run_plagiarism_check",
]
