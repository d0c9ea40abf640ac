"""HTTP client for the IAT result store API.

Submissions go through two optional pre-flight probes (service health and
storage connectivity) before the POST, and every failure is raised as a
``SubmissionError`` subclass with a user-facing message.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from iat_client.identity import UserIdStore, collect_device_info, user_agent

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class SubmissionError(Exception):
    """Base class for submission failures.

    Attributes:
        message: User-facing description
        status_code: HTTP status when the server answered, else None
        body: Decoded error body when the server answered, else None
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class SubmissionValidationError(SubmissionError):
    """The server rejected the payload (400)."""


class DuplicateSubmissionError(SubmissionError):
    """The server reported a duplicate record (409)."""


class StorageUnavailableError(SubmissionError):
    """The server could not reach its storage (503 or failed storage probe)."""


class ServiceUnavailableError(SubmissionError):
    """The health probe failed."""


class NetworkError(SubmissionError):
    """No response was received from the server."""


@dataclass
class TestResults:
    """Reaction times (ms) per stimulus pairing."""

    male_computer: List[float] = field(default_factory=list)
    female_skincare: List[float] = field(default_factory=list)
    female_computer: List[float] = field(default_factory=list)
    male_skincare: List[float] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TestResults":
        return cls(
            male_computer=list(data.get("maleComputer") or []),
            female_skincare=list(data.get("femaleSkincare") or []),
            female_computer=list(data.get("femaleComputer") or []),
            male_skincare=list(data.get("maleSkincare") or []),
        )

    def to_payload(self) -> Dict[str, List[float]]:
        return {
            "maleComputer": list(self.male_computer),
            "femaleSkincare": list(self.female_skincare),
            "femaleComputer": list(self.female_computer),
            "maleSkincare": list(self.male_skincare),
        }


@dataclass
class AnalysisInput:
    """Bias analysis computed by the caller."""

    d_score: float
    bias_type: Optional[str]
    bias_level: str
    bias_direction: Optional[str] = None
    d1_score: Optional[float] = None
    d2_score: Optional[float] = None
    d3_score: Optional[float] = None
    d4_score: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisInput":
        return cls(
            d_score=data.get("dScore", 0),
            bias_type=data.get("biasType"),
            bias_level=data.get("biasLevel", ""),
            bias_direction=data.get("biasDirection"),
            d1_score=data.get("d1Score"),
            d2_score=data.get("d2Score"),
            d3_score=data.get("d3Score"),
            d4_score=data.get("d4Score"),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "dScore": self.d_score,
            "biasType": self.bias_type,
            "biasLevel": self.bias_level,
            "biasDirection": self.bias_direction,
            "d1Score": self.d1_score,
            "d2Score": self.d2_score,
            "d3Score": self.d3_score,
            "d4Score": self.d4_score,
        }


class ResultSubmissionClient:
    """Submits test results and queries the result store API.

    Attributes:
        base_url: API base URL including the ``/api`` prefix
        preflight: Run the health and storage probes before each submit
        timeout: HTTP request timeout in seconds
    """

    def __init__(
        self,
        base_url: str,
        preflight: bool = True,
        timeout: Optional[float] = None,
        user_id_store: Optional[UserIdStore] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            base_url: API base URL (e.g., "http://localhost:5000/api")
            preflight: Whether submit() runs the pre-flight probes
            timeout: HTTP request timeout in seconds (default: 30.0)
            user_id_store: Where the per-installation user id is kept
            transport: Optional httpx transport, used by tests
        """
        self.base_url = base_url.rstrip("/")
        self.preflight = preflight
        self.timeout = timeout if timeout is not None else DEFAULT_TIMEOUT
        self.user_id_store = user_id_store or UserIdStore()
        self._http = httpx.Client(
            timeout=self.timeout,
            transport=transport,
            headers={"Accept": "application/json", "User-Agent": user_agent()},
        )

    def __enter__(self) -> "ResultSubmissionClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def _url(self, path: str = "") -> str:
        return f"{self.base_url}{path}"

    def _probe(self, path: str, name: str) -> bool:
        try:
            response = self._http.get(self._url(path))
        except httpx.HTTPError as e:
            logger.error(f"{name} failed: {e}")
            return False

        if response.is_success:
            logger.info(f"{name} passed")
            return True

        logger.warning(f"{name} failed with status {response.status_code}")
        return False

    def health_check(self) -> bool:
        """GET /health once. True when the service answers 2xx."""
        return self._probe("/health", "API health check")

    def connectivity_check(self) -> bool:
        """GET /storage-check once. True when the storage round trip succeeds."""
        return self._probe("/storage-check", "Storage connectivity check")

    def build_payload(
        self,
        test_results: TestResults,
        analysis: AnalysisInput,
        survey_responses: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Assemble the submission body for POST /test-results."""
        return {
            "userId": self.user_id_store.get_or_create_user_id(),
            "testDate": _utc_now_iso(),
            "results": test_results.to_payload(),
            "analysis": analysis.to_payload(),
            "surveyResponses": survey_responses or {},
            "deviceInfo": collect_device_info(),
        }

    def submit(
        self,
        test_results: TestResults,
        analysis: AnalysisInput,
        survey_responses: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Submit one completed test.

        Returns:
            The decoded success response ``{success, message, data}``

        Raises:
            ServiceUnavailableError: The health probe failed
            StorageUnavailableError: The storage probe failed or the server
                answered 503
            SubmissionValidationError: The server answered 400
            DuplicateSubmissionError: The server answered 409
            NetworkError: No response was received
            SubmissionError: Any other non-2xx answer
        """
        payload = self.build_payload(test_results, analysis, survey_responses)
        results = payload["results"]
        logger.info(
            "Submitting test result",
            extra={
                "user_id": payload["userId"],
                "series_lengths": {name: len(values) for name, values in results.items()},
                "d_score": payload["analysis"]["dScore"],
            },
        )

        if self.preflight:
            if not self.health_check():
                raise ServiceUnavailableError(
                    f"The API service cannot be reached. "
                    f"Make sure the server is running at {self.base_url}."
                )
            if not self.connectivity_check():
                raise StorageUnavailableError(
                    "The result storage cannot be reached. Check:\n"
                    "- the network connection\n"
                    "- the database access allow-list\n"
                    "- the database server status"
                )

        try:
            response = self._http.post(self._url("/test-results"), json=payload)
        except httpx.TransportError as e:
            logger.error(f"Submission failed without a response: {e}")
            raise NetworkError(
                "Network connection failed. Check:\n"
                f"- that the server is running at {self.base_url}\n"
                "- that the local network connection is working"
            ) from e

        if not response.is_success:
            raise _error_for_response(response)

        result = response.json()
        data = result.get("data") or {}
        logger.info(
            "Test result saved",
            extra={"record_id": data.get("id"), "created_at": data.get("createdAt")},
        )
        return result

    def get_stats(self) -> Optional[Dict[str, Any]]:
        """GET /test-results/count/all. None on any failure."""
        try:
            response = self._http.get(self._url("/test-results/count/all"))
        except httpx.HTTPError as e:
            logger.error(f"Fetching statistics failed: {e}")
            return None

        if not response.is_success:
            logger.error(f"Fetching statistics failed with status {response.status_code}")
            return None
        return response.json()

    def diagnose(self) -> bool:
        """Walk through banner, health, storage check and stats, logging each step.

        Returns:
            True when every required step passed
        """
        logger.info("Step 1: API banner")
        try:
            response = self._http.get(self._url())
        except httpx.HTTPError as e:
            logger.error(f"API banner request failed: {e}")
            return False
        if not response.is_success:
            logger.error(f"API banner request failed with status {response.status_code}")
            return False
        logger.info(f"API banner: {response.json()}")

        logger.info("Step 2: health check")
        if not self.health_check():
            return False

        logger.info("Step 3: storage connectivity")
        if not self.connectivity_check():
            return False

        logger.info("Step 4: statistics")
        stats = self.get_stats()
        if stats:
            logger.info(f"Statistics: {stats.get('data')}")

        logger.info("All checks passed")
        return True


def _utc_now_iso() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _error_for_response(response: httpx.Response) -> SubmissionError:
    """Map a non-2xx submission response onto a SubmissionError subclass."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        body = {"message": response.text}

    status_code = response.status_code
    server_message = body.get("message") or response.reason_phrase
    logger.error(
        f"Submission rejected with status {status_code}",
        extra={"status_code": status_code, "error_code": body.get("error")},
    )

    if status_code == 400:
        return SubmissionValidationError(
            f"Data validation failed: {body.get('message') or 'check the data format'}",
            status_code,
            body,
        )
    if status_code == 409:
        return DuplicateSubmissionError(
            f"Duplicate submission: {body.get('message') or 'this result already exists'}",
            status_code,
            body,
        )
    if status_code == 503:
        return StorageUnavailableError(
            f"Storage unavailable: {body.get('message') or 'the database is not reachable'}",
            status_code,
            body,
        )
    return SubmissionError(
        f"Submission failed ({status_code}): {server_message}", status_code, body
    )
