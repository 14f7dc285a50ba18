"""Client for an external similarity oracle.

The oracle scores two repositories directly:

    POST <endpoint>  {"repoA": ..., "repoB": ...}  ->  {"score": 0.42, "details": {...}}

Any failure is reported as OracleError so the caller can fall back to local
comparison.
"""

import logging
import math
from typing import Any

import httpx

from ..core.exceptions import OracleError
from ..core.protocols import Fingerprint, ProviderScore

logger = logging.getLogger(__name__)


class OracleSimilarityProvider:
    """Delegates pairwise comparison to an HTTP similarity service."""

    name = "oracle"

    def __init__(
        self,
        endpoint: str,
        api_key: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the oracle client.

        Args:
            endpoint: URL the comparison request is POSTed to
            api_key: Sent as a bearer token when set
            timeout: Seconds allowed for the whole request
            transport: Custom httpx transport (tests)
        """
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    async def compare(
        self, target: Fingerprint, target_url: str, peer_url: str
    ) -> ProviderScore:
        payload = await self._request(target_url, peer_url)
        score = _parse_score(payload)
        return ProviderScore(
            similarity=min(1.0, max(0.0, score)),
            method=self.name,
            details=payload.get("details"),
        )

    async def _request(self, repo_a: str, repo_b: str) -> dict[str, Any]:
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.endpoint,
                    json={"repoA": repo_a, "repoB": repo_b},
                    headers=headers,
                )
        except httpx.TimeoutException as e:
            raise OracleError(f"Similarity API timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise OracleError(f"Similarity API request failed: {e}") from e
        except (httpx.InvalidURL, UnicodeError) as e:
            # Bad endpoint or a key that cannot go into a header
            raise OracleError(f"Similarity API request could not be built: {e}") from e

        if not response.is_success:
            raise OracleError(
                f"Similarity API failed ({response.status_code}): {_error_message(response)}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise OracleError(f"Similarity API returned invalid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise OracleError(f"Similarity API returned {type(payload).__name__}, expected object")

        return payload


def _parse_score(payload: dict[str, Any]) -> float:
    # Older service versions answer with "similarity" instead of "score"
    raw = payload.get("score")
    if raw is None:
        raw = payload.get("similarity")
    if isinstance(raw, bool) or not isinstance(raw, (int, float, str)):
        raise OracleError(f"Similarity API returned no numeric score: {raw!r}")

    try:
        score = float(raw)
    except ValueError as e:
        raise OracleError(f"Similarity API returned no numeric score: {raw!r}") from e

    if not math.isfinite(score):
        raise OracleError(f"Similarity API returned non-finite score: {raw!r}")
    return score


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.text[:200]
