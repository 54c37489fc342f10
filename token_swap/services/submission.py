"""Submission controller: one in-flight swap submission at a time."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..domain.errors import ConversionError, ErrorKind
from ..domain.interfaces import ExecutionService
from ..domain.session import ConversionSession, Phase
from ..settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionRequest:
    source_symbol: str
    target_symbol: str
    amount: Decimal


class SubmissionController:
    """
    Wraps the execution service call and owns the Submitting phase.

    ``reserve()`` claims the single submission slot as soon as a submit is
    requested, before it waits for the engine, so a second request is
    rejected instead of queued behind the first.
    """

    def __init__(self, execution: ExecutionService, timeout_sec: Optional[float] = None) -> None:
        self._execution = execution
        self._timeout = timeout_sec if timeout_sec is not None else settings.EXECUTION_TIMEOUT_SEC
        self._in_flight = False

    @property
    def execution(self) -> ExecutionService:
        return self._execution

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def reserve(self) -> None:
        if self._in_flight:
            raise ConversionError(ErrorKind.ALREADY_SUBMITTING, "A swap is already being submitted")
        self._in_flight = True

    def release(self) -> None:
        self._in_flight = False

    async def run(self, session: ConversionSession, request: SubmissionRequest) -> str:
        """Execute the swap and return the transaction id; the session is back in Ready on exit."""
        session.phase = Phase.SUBMITTING
        logger.info(f"Submitting swap {request.amount} {request.source_symbol} -> {request.target_symbol}")
        try:
            return await asyncio.wait_for(
                self._execution.execute_swap(request.source_symbol, request.target_symbol, request.amount),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Swap submission timed out after {self._timeout}s")
            raise ConversionError(ErrorKind.TIMEOUT, "Swap request timed out")
        except ConversionError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected error from execution service")
            raise ConversionError(ErrorKind.SUBMIT_FAILURE, "Swap failed. Please try again.", {"reason": str(exc)})
        finally:
            session.phase = Phase.READY
