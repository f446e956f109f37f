"""Tests for the demo scenario."""

from datetime import date

from allocator import AllocationLedger
from allocator.tree import add_months
from generators.scenario_factory import ScenarioFactory, load_resources, save_resources
from models import ActivityStatus


def _run(months: int = 12):
    factory = ScenarioFactory(seed=7)
    holder = factory.build_holder(start_date=date(2025, 1, 1))
    ledger = AllocationLedger()
    holder.add_listener(ledger)
    holder.resources.market.activities_holder.add_listener(ledger)

    days = {p.id: p.available_days for p in holder.resources.labour}
    holder.start_of_simulation()
    for offset in range(months):
        for person in holder.resources.labour:
            person.available_days = days[person.id]
        holder.step(add_months(date(2025, 1, 1), offset))
    return holder, ledger


class TestScenarioFactory:
    def test_same_seed_same_labour(self):
        first = ScenarioFactory(seed=3).generate_labour()
        second = ScenarioFactory(seed=3).generate_labour()
        assert [p.model_dump() for p in first] == [p.model_dump() for p in second]

    def test_year_runs(self):
        holder, ledger = _run()

        assert len(ledger.get_statuses("Feed herd")) == 12
        assert ledger.get_statuses("Harvest wheat").count(ActivityStatus.SUCCESS) == 2
        assert ledger.get_statuses("Harvest time") == [ActivityStatus.TIMER, ActivityStatus.TIMER]
        assert holder.resources.find_by_full_name("ProductStore.Grain").amount > 0
        assert holder.resources.find_by_full_name("GreenhouseGases.Methane").amount == 12 * 120 * 7.5
        # The bank runs dry before the year is out
        assert ledger.shortfalls

    def test_no_label_warnings(self):
        holder, _ = _run(months=1)
        assert all(not a.warnings for a in holder.all_activities())

    def test_cache_round_trip(self, tmp_path):
        resources = ScenarioFactory().generate_resources()
        path = tmp_path / "scenario.json"
        save_resources(resources, str(path))

        loaded = load_resources(str(path))

        assert [s.full_name for s in loaded["stocks"]] == [s.full_name for s in resources["stocks"]]
        assert loaded["labour"][0].attributes == resources["labour"][0].attributes

    def test_missing_cache(self, tmp_path):
        assert load_resources(str(tmp_path / "missing.json")) is None
