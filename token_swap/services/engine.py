"""
Conversion state engine.

Owns the ConversionSession and every transition on it. Mutating intents are
serialized through one FIFO lock: while a swap or submission is in flight,
later intents wait and are applied in the order they were issued. A second
submit is the exception and is rejected by the SubmissionController.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Union

from ..domain.asset import Asset
from ..domain.errors import ConversionError, ErrorKind
from ..domain.rates import convert, format_amount, rate
from ..domain.session import AssetRole, ConversionSession, Phase, SwapReceipt
from ..domain.validator import parse_amount, validate
from ..models import SessionSnapshot
from ..settings import settings
from .directory import AssetDirectory
from .submission import SubmissionController, SubmissionRequest

logger = logging.getLogger(__name__)

SwapConfirmation = Callable[[Asset, Asset], Awaitable[None]]


async def _yield_control(source: Asset, target: Asset) -> None:
    await asyncio.sleep(0)


class ConversionEngine:
    """Core entrypoint for conversion session operations."""

    def __init__(
        self,
        directory: AssetDirectory,
        submissions: SubmissionController,
        confirm_swap: Optional[SwapConfirmation] = None,
        *,
        load_timeout_sec: Optional[float] = None,
        default_source: Optional[str] = None,
        default_target: Optional[str] = None,
    ) -> None:
        self.directory = directory
        self.submissions = submissions
        self._confirm_swap = confirm_swap or _yield_control
        self._load_timeout = load_timeout_sec if load_timeout_sec is not None else settings.CATALOG_LOAD_TIMEOUT_SEC
        self._default_source = (default_source or settings.DEFAULT_SOURCE_SYMBOL).upper()
        self._default_target = (default_target or settings.DEFAULT_TARGET_SYMBOL).upper()
        self._session = ConversionSession()
        self._lock = asyncio.Lock()

    @property
    def session(self) -> ConversionSession:
        return self._session

    @property
    def phase(self) -> Phase:
        return self._session.phase

    @property
    def catalog_error(self) -> Optional[ConversionError]:
        return self._session.catalog_error

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot.from_session(self._session)

    # ------------------------------------------------------------------ utilities

    def recompute(self) -> None:
        """Re-derive validation_error and target_amount_text from the current inputs."""
        session = self._session
        result = validate(session.source_amount_text, session.source_asset)
        target_text = ""
        if result.accepted and result.amount is not None and session.has_pair:
            converted = convert(result.amount, rate(session.source_asset, session.target_asset))
            target_text = format_amount(converted)
        # both fields are written together once everything is derived
        session.validation_error = result.to_error()
        session.target_amount_text = target_text

    def _require_catalog(self) -> None:
        if self._session.phase in (Phase.IDLE, Phase.CATALOG_LOADING):
            raise ConversionError(ErrorKind.NOT_READY, "Tokens are still loading")

    def _rebind(self, asset: Optional[Asset]) -> Optional[Asset]:
        if asset is None:
            return None
        return self.directory.lookup(asset.symbol)

    def _select_defaults(self) -> None:
        session = self._session
        sources = self.directory.source_candidates()
        source = self.directory.lookup(self._default_source)
        if source is None or source not in sources:
            source = sources[0] if sources else None
        target = self.directory.lookup(self._default_target)
        if target is None or (source is not None and target.symbol == source.symbol):
            others = self.directory.target_candidates(source.symbol if source else None)
            target = others[0] if others else None
        session.source_asset = source
        session.target_asset = target

    # -------------------------------------------------------------------- catalog

    async def load_catalog(self) -> SessionSnapshot:
        """
        Load (or refresh) the asset catalog.

        The first load moves Idle -> CatalogLoading -> Ready and picks the
        default pair. Later calls refresh the catalog in place: selected
        assets are re-bound by symbol to their new values and the phase
        stays Ready. A failed load leaves the session Ready with the error
        recorded in ``catalog_error``.
        """
        async with self._lock:
            session = self._session
            initial = session.phase is Phase.IDLE
            if initial:
                session.phase = Phase.CATALOG_LOADING
            try:
                await asyncio.wait_for(self.directory.load(), timeout=self._load_timeout)
            except asyncio.TimeoutError:
                self._catalog_failed(ConversionError(ErrorKind.TIMEOUT, "Asset catalog did not respond in time"))
                return self.snapshot()
            except ConversionError as exc:
                self._catalog_failed(exc)
                return self.snapshot()
            except Exception as exc:  # noqa: BLE001
                logger.exception("Unexpected error while loading the asset catalog")
                self._catalog_failed(ConversionError(ErrorKind.FETCH_ERROR, "Failed to load tokens", {"reason": str(exc)}))
                return self.snapshot()

            session.catalog_error = None
            session.source_asset = self._rebind(session.source_asset)
            session.target_asset = self._rebind(session.target_asset)
            if session.source_asset is None and session.target_asset is None:
                self._select_defaults()
            session.phase = Phase.READY
            self.recompute()
            logger.info(
                f"Catalog ready: {len(self.directory.assets())} assets, "
                f"pair {session.source_asset.symbol if session.source_asset else '-'}"
                f"/{session.target_asset.symbol if session.target_asset else '-'}"
            )
            return self.snapshot()

    def _catalog_failed(self, error: ConversionError) -> None:
        logger.error(f"Catalog load failed: {error}")
        session = self._session
        session.catalog_error = error
        session.phase = Phase.READY
        self.recompute()

    # -------------------------------------------------------------------- intents

    async def select_asset(self, symbol: str, role: Union[AssetRole, str]) -> SessionSnapshot:
        """Pick the source or target asset; a conflicting opposite slot is cleared."""
        role = AssetRole(role)
        async with self._lock:
            self._require_catalog()
            asset = self.directory.lookup(symbol)
            if asset is None:
                raise ConversionError(ErrorKind.UNKNOWN_ASSET, f"Token {symbol} not found", {"symbol": symbol})
            session = self._session
            if role is AssetRole.SOURCE:
                session.source_asset = asset
                if session.target_asset is not None and session.target_asset.symbol == asset.symbol:
                    session.target_asset = None
            else:
                session.target_asset = asset
                if session.source_asset is not None and session.source_asset.symbol == asset.symbol:
                    session.source_asset = None
            session.submit_error = None
            self.recompute()
            return self.snapshot()

    async def set_source_amount_text(self, text: str) -> SessionSnapshot:
        async with self._lock:
            self._require_catalog()
            session = self._session
            session.source_amount_text = text or ""
            session.submit_error = None
            self.recompute()
            return self.snapshot()

    async def swap(self) -> SessionSnapshot:
        """
        Exchange source and target.

        The previous target text becomes the new source text and the new
        target is recomputed with the inverted rate. The exchange is applied
        once the swap confirmation completes; until then the phase is Swapping.
        """
        async with self._lock:
            session = self._session
            if not session.has_pair:
                logger.debug("Swap requested without both assets selected; ignoring")
                return self.snapshot()
            session.phase = Phase.SWAPPING
            try:
                await self._confirm_swap(session.source_asset, session.target_asset)
                previous_target_text = session.target_amount_text
                session.source_asset, session.target_asset = session.target_asset, session.source_asset
                session.source_amount_text = previous_target_text
                session.submit_error = None
                self.recompute()
            finally:
                session.phase = Phase.READY
            logger.info(f"Swapped pair to {session.source_asset.symbol}/{session.target_asset.symbol}")
            return self.snapshot()

    async def submit(self) -> SwapReceipt:
        """
        Submit the current conversion to the execution service.

        On success both amounts are cleared; on failure the error is kept in
        ``submit_error`` and the entered amount is preserved for retry.
        """
        self.submissions.reserve()
        try:
            async with self._lock:
                return await self._submit()
        finally:
            self.submissions.release()

    async def _submit(self) -> SwapReceipt:
        session = self._session
        self._require_catalog()
        if not session.has_pair:
            raise ConversionError(ErrorKind.NOT_READY, "Please select both tokens")
        if session.source_asset.symbol == session.target_asset.symbol:
            raise ConversionError(ErrorKind.SAME_ASSET, "Cannot swap the same currency")
        if session.validation_error is not None:
            error = session.validation_error
            raise ConversionError(error.kind, error.message, error.details)
        amount = parse_amount(session.source_amount_text)
        if amount is None or amount <= 0:
            raise ConversionError(ErrorKind.NOT_READY, "Please enter a valid amount")

        request = SubmissionRequest(session.source_asset.symbol, session.target_asset.symbol, amount)
        source_text, target_text = session.source_amount_text, session.target_amount_text
        session.submit_error = None
        try:
            transaction_id = await self.submissions.run(session, request)
        except ConversionError as exc:
            logger.warning(f"Swap submission failed: {exc}")
            session.submit_error = exc
            raise

        receipt = SwapReceipt(
            transaction_id=transaction_id,
            source_symbol=request.source_symbol,
            target_symbol=request.target_symbol,
            source_amount=source_text,
            target_amount=target_text,
        )
        session.last_receipt = receipt
        session.clear_amounts()
        logger.info(f"Swap settled: {source_text} {request.source_symbol} -> {target_text} {request.target_symbol} ({transaction_id})")
        return receipt

    async def reset(self) -> SessionSnapshot:
        """Clear amounts, errors and the last receipt, and go back to the default pair."""
        async with self._lock:
            session = self._session
            session.clear_amounts()
            session.submit_error = None
            session.last_receipt = None
            if self.directory.loaded:
                self._select_defaults()
            self.recompute()
            return self.snapshot()
