"""FastAPI router exposing the conversion session intents and snapshot."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from .domain.errors import ConversionError, ErrorKind
from .models import (
    AmountRequest,
    AssetView,
    CatalogView,
    ErrEnvelope,
    ErrorBody,
    OkEnvelope,
    ReceiptView,
    SelectAssetRequest,
)
from .services.engine import ConversionEngine


router = APIRouter()


STATUS_BY_KIND = {
    ErrorKind.ALREADY_SUBMITTING: 409,
    ErrorKind.NOT_READY: 409,
    ErrorKind.SAME_ASSET: 409,
    ErrorKind.UNKNOWN_ASSET: 404,
    ErrorKind.FETCH_ERROR: 502,
    ErrorKind.SUBMIT_FAILURE: 502,
    ErrorKind.TIMEOUT: 504,
}

RETRIABLE_KINDS = {ErrorKind.FETCH_ERROR, ErrorKind.SUBMIT_FAILURE, ErrorKind.TIMEOUT}


def engine_dep(request: Request) -> ConversionEngine:
    return request.app.state.engine


def success(data: dict) -> JSONResponse:
    payload = OkEnvelope(data=data)
    return JSONResponse(content=jsonable_encoder(payload))


def failure(exc: ConversionError) -> JSONResponse:
    error = ErrEnvelope(error=ErrorBody.from_error(exc, retriable=exc.kind in RETRIABLE_KINDS))
    return JSONResponse(content=jsonable_encoder(error), status_code=STATUS_BY_KIND.get(exc.kind, 400))


@router.get("/assets")
async def list_assets(engine: ConversionEngine = Depends(engine_dep)):
    directory = engine.directory
    source = engine.snapshot().source_asset
    view = CatalogView(
        assets=[AssetView.from_asset(a) for a in directory.assets()],
        source_candidates=[AssetView.from_asset(a) for a in directory.source_candidates()],
        target_candidates=[AssetView.from_asset(a) for a in directory.target_candidates(source.symbol if source else None)],
    )
    return success(view.model_dump())


@router.post("/catalog/refresh")
async def refresh_catalog(engine: ConversionEngine = Depends(engine_dep)):
    snapshot = await engine.load_catalog()
    if engine.catalog_error is not None:
        return failure(engine.catalog_error)
    return success({"session": snapshot.model_dump()})


@router.get("/session")
async def get_session(engine: ConversionEngine = Depends(engine_dep)):
    return success({"session": engine.snapshot().model_dump()})


@router.post("/session/amount")
async def set_amount(payload: AmountRequest, engine: ConversionEngine = Depends(engine_dep)):
    try:
        snapshot = await engine.set_source_amount_text(payload.text)
    except ConversionError as exc:
        return failure(exc)
    return success({"session": snapshot.model_dump()})


@router.post("/session/select")
async def select_asset(payload: SelectAssetRequest, engine: ConversionEngine = Depends(engine_dep)):
    try:
        snapshot = await engine.select_asset(payload.symbol, payload.role)
    except ConversionError as exc:
        return failure(exc)
    return success({"session": snapshot.model_dump()})


@router.post("/session/swap")
async def swap(engine: ConversionEngine = Depends(engine_dep)):
    snapshot = await engine.swap()
    return success({"session": snapshot.model_dump()})


@router.post("/session/submit")
async def submit(engine: ConversionEngine = Depends(engine_dep)):
    try:
        receipt = await engine.submit()
    except ConversionError as exc:
        return failure(exc)
    return success({"receipt": ReceiptView.from_receipt(receipt).model_dump(), "session": engine.snapshot().model_dump()})


@router.post("/session/reset")
async def reset(engine: ConversionEngine = Depends(engine_dep)):
    snapshot = await engine.reset()
    return success({"session": snapshot.model_dump()})
