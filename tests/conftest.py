import pytest

from core.pipeline.models import Opportunity, Thesis

from fakes import FakeMarketData, InMemorySessionStore


@pytest.fixture
def value_thesis() -> Thesis:
    return Thesis(text="deep value shipping co.", strategy="value")


@pytest.fixture
def shipping_opportunity() -> Opportunity:
    return Opportunity(
        ticker="ZIM",
        company_name="ZIM Integrated Shipping",
        thesis="Trades below net cash",
        score=85,
    )


@pytest.fixture
def market_data() -> FakeMarketData:
    return FakeMarketData()


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()
