"""
Validation and normalization of raw test result submissions.

A single policy covers both acceptance modes:

* permissive (default): any shape is accepted. Missing structures are
  defaulted and non-numeric reaction times are dropped.
* strict: a missing ``results``/``analysis`` object or a malformed
  reaction-time series is rejected.

In both modes ``userId`` must be a non-empty string, non-positive reaction
times are dropped and the numeric analysis fields are coerced to floats.
"""
import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from pydantic import TypeAdapter, ValidationError

from iat_api.core.config import settings
from iat_api.core.datetime_utils import ensure_timezone_aware, utc_now
from iat_api.core.error_responses import ErrorCodes, ErrorMessages
from iat_api.schemas.test_results import (
    RESULT_SERIES_FIELDS,
    BiasAnalysis,
    ResultSeries,
    TestResultCreate,
)

logger = logging.getLogger(__name__)

_ANALYSIS_NUMERIC_FIELDS = ("dScore", "d1Score", "d2Score", "d3Score", "d4Score")

_datetime_adapter = TypeAdapter(datetime)


class SubmissionValidationError(Exception):
    """Raised when a submission cannot be accepted.

    Attributes:
        code: Machine-readable error code (see ErrorCodes)
        message: User-facing message
        details: Optional structured details (field-level errors)
    """

    def __init__(self, code: str, message: str, details: Optional[Any] = None):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)


def is_reaction_time(value: Any) -> bool:
    """True for finite positive numbers. Booleans are not numbers here."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def coerce_number(value: Any) -> float:
    """Coerce an analysis value to float, falling back to 0."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0.0
        return number if math.isfinite(number) else 0.0
    return 0.0


def _normalize_series(name: str, value: Any, strict: bool) -> List[float]:
    if value is None:
        return []
    if not isinstance(value, list):
        if strict:
            raise SubmissionValidationError(
                ErrorCodes.INVALID_RESULTS_STRUCTURE,
                ErrorMessages.invalid_result_series(name),
            )
        return []

    if strict:
        bad = [
            index
            for index, item in enumerate(value)
            if isinstance(item, bool) or not isinstance(item, (int, float))
        ]
        if bad:
            raise SubmissionValidationError(
                ErrorCodes.INVALID_RESULTS_STRUCTURE,
                ErrorMessages.invalid_result_series(name),
                details=[{"field": f"results.{name}", "indexes": bad}],
            )

    kept = [float(item) for item in value if is_reaction_time(item)]
    if len(kept) != len(value):
        logger.debug(
            f"Dropped {len(value) - len(kept)} invalid reaction times from {name}"
        )
    return kept


def _normalize_results(results: Any, strict: bool) -> ResultSeries:
    if results is None:
        if strict:
            raise SubmissionValidationError(
                ErrorCodes.MISSING_RESULTS, ErrorMessages.MISSING_RESULTS
            )
        results = {}
    if not isinstance(results, Mapping):
        if strict:
            raise SubmissionValidationError(
                ErrorCodes.INVALID_RESULTS_STRUCTURE,
                "Test results must be an object.",
            )
        results = {}

    return ResultSeries.model_validate(
        {
            name: _normalize_series(name, results.get(name), strict)
            for name in RESULT_SERIES_FIELDS
        }
    )


def _text_or_default(value: Any, default: Optional[str]) -> Optional[str]:
    if not value:
        return default
    return value if isinstance(value, str) else str(value)


def _normalize_analysis(analysis: Any, strict: bool) -> BiasAnalysis:
    if analysis is None or not isinstance(analysis, Mapping):
        if strict:
            raise SubmissionValidationError(
                ErrorCodes.MISSING_ANALYSIS, ErrorMessages.MISSING_ANALYSIS
            )
        analysis = {}

    data: Dict[str, Any] = {
        name: coerce_number(analysis.get(name)) for name in _ANALYSIS_NUMERIC_FIELDS
    }
    data["biasType"] = _text_or_default(analysis.get("biasType"), None)
    data["biasLevel"] = _text_or_default(
        analysis.get("biasLevel"), settings.DEFAULT_BIAS_LEVEL
    )
    data["biasDirection"] = _text_or_default(analysis.get("biasDirection"), "")
    return BiasAnalysis.model_validate(data)


def _normalize_test_date(value: Any) -> datetime:
    # Falsy values (null, "", 0) mean "now".
    if value is None or value == "" or value == 0:
        return utc_now()
    try:
        parsed = _datetime_adapter.validate_python(value)
    except ValidationError:
        raise SubmissionValidationError(
            ErrorCodes.VALIDATION_ERROR,
            ErrorMessages.VALIDATION_FAILED,
            details=[{"field": "testDate", "message": "Invalid date."}],
        )
    return ensure_timezone_aware(parsed).astimezone(timezone.utc)


def _normalize_map(name: str, value: Any, strict: bool) -> Dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    if strict:
        raise SubmissionValidationError(
            ErrorCodes.VALIDATION_ERROR,
            ErrorMessages.VALIDATION_FAILED,
            details=[{"field": name, "message": "Must be an object."}],
        )
    return {}


def normalize_submission(payload: Any, *, strict: bool = False) -> TestResultCreate:
    """
    Validate a raw submission and apply defaults.

    Args:
        payload: Decoded JSON request body
        strict: Reject malformed ``results``/``analysis`` instead of defaulting

    Returns:
        The normalized submission

    Raises:
        SubmissionValidationError: If the payload cannot be accepted
    """
    if not isinstance(payload, Mapping):
        payload = {}

    user_id = payload.get("userId")
    if not isinstance(user_id, str) or not user_id.strip():
        raise SubmissionValidationError(
            ErrorCodes.MISSING_USER_ID, ErrorMessages.MISSING_USER_ID
        )

    if strict:
        # Presence first, then structure.
        if payload.get("results") is None:
            raise SubmissionValidationError(
                ErrorCodes.MISSING_RESULTS, ErrorMessages.MISSING_RESULTS
            )
        if payload.get("analysis") is None:
            raise SubmissionValidationError(
                ErrorCodes.MISSING_ANALYSIS, ErrorMessages.MISSING_ANALYSIS
            )

    return TestResultCreate(
        user_id=user_id,
        test_date=_normalize_test_date(payload.get("testDate")),
        results=_normalize_results(payload.get("results"), strict),
        analysis=_normalize_analysis(payload.get("analysis"), strict),
        survey_responses=_normalize_map(
            "surveyResponses", payload.get("surveyResponses"), strict
        ),
        device_info=_normalize_map("deviceInfo", payload.get("deviceInfo"), strict),
    )
