from __future__ import annotations

from decimal import Decimal

import pytest
import pytest_asyncio

from token_swap.services import ConversionEngine

from tests.fakes import FakeCatalog, FakeExecution, build_engine


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def execution() -> FakeExecution:
    return FakeExecution()


@pytest.fixture
def engine(catalog, execution) -> ConversionEngine:
    return build_engine(catalog, execution)


@pytest_asyncio.fixture
async def ready_engine(engine) -> ConversionEngine:
    await engine.load_catalog()
    return engine


@pytest_asyncio.fixture
async def wallet_engine(catalog, execution) -> ConversionEngine:
    engine = build_engine(
        catalog,
        execution,
        balances={"ETH": Decimal("2.5"), "USDC": Decimal("5000"), "USDT": Decimal("1000")},
    )
    await engine.load_catalog()
    return engine
