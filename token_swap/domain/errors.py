"""Error kinds surfaced by the conversion engine."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    MALFORMED_NUMBER = "MalformedNumber"
    NON_POSITIVE_AMOUNT = "NonPositiveAmount"
    INSUFFICIENT_BALANCE = "InsufficientBalance"
    SAME_ASSET = "SameAssetError"
    ALREADY_SUBMITTING = "AlreadySubmittingError"
    FETCH_ERROR = "FetchError"
    SUBMIT_FAILURE = "SubmitFailure"
    TIMEOUT = "Timeout"
    UNKNOWN_ASSET = "UnknownAsset"
    NOT_READY = "NotReady"


@dataclass(slots=True)
class ConversionError(Exception):
    kind: ErrorKind
    message: str
    details: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.kind.value, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload
