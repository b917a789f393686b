"""
Unit tests for the adoption service wiring.

Uses the fake pool and session so neither a database nor the pet search
service is needed.
"""

from datetime import datetime, timezone

from src.aggregation import AdoptionService
from src.aggregation.service import build_aggregator
from src.core.config import AggregatorSettings
from src.core.models import Adoption

from conftest import FakeCursor, FakePool, FakeResponse, FakeSession

PET_SEARCH_URL = "http://petsearch.local/api/search?"
ADOPTED_AT = datetime(2025, 11, 17, 10, 24, tzinfo=timezone.utc)


def make_settings(**aggregation):
    return AggregatorSettings.model_validate({
        "database": {"password": "secret", "table": "adoption_log"},
        "pet_search": {"url": PET_SEARCH_URL, "timeout": 4.0},
        "aggregation": aggregation,
        "logging": {"level": "WARNING", "format": "text"},
    })


class TestBuildAggregator:
    """Tests for wiring components from settings"""

    def test_applies_settings(self):
        aggregator = build_aggregator(
            make_settings(transaction_limit=10, max_workers=2),
            FakePool(FakeCursor()),
            session=FakeSession(),
        )

        assert aggregator.source.limit == 10
        assert aggregator.source.table == "adoption_log"
        assert aggregator.client.timeout == 4.0
        assert aggregator.max_workers == 2

    def test_defaults(self):
        aggregator = build_aggregator(make_settings(), FakePool(FakeCursor()), session=FakeSession())

        assert aggregator.source.limit == 25
        assert aggregator.max_workers is None


class TestAdoptionService:
    """Tests for the service entry point"""

    def test_get_latest_adoptions(self):
        cursor = FakeCursor(rows=[{"pet_id": "p1", "transaction_id": "t1", "adoption_date": ADOPTED_AT}])
        session = FakeSession({"p1": FakeResponse(200, [{"petid": "p1", "availability": "yes"}])})

        with AdoptionService(make_settings(), pool=FakePool(cursor), session=session) as service:
            adoptions = service.get_latest_adoptions()

        assert adoptions == [
            Adoption(transaction_id="t1", pet_id="p1", adoption_date=ADOPTED_AT, availability="yes")
        ]
        assert session.calls[0]["url"] == f"{PET_SEARCH_URL}petid=p1"

    def test_injected_session_left_open(self):
        session = FakeSession()
        with AdoptionService(make_settings(), pool=FakePool(FakeCursor()), session=session):
            pass
        assert not session.closed

    def test_render_metrics(self):
        body, content_type = AdoptionService.render_metrics()

        assert b"adoption_enrichment_lookups_total" in body
        assert content_type.startswith("text/plain")
