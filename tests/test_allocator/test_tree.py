"""Tests for the activity tree holder and timestep loop."""

from datetime import date

from allocator import (
    ActivitiesHolder,
    Activity,
    AllocationLedger,
    CallbackBehaviour,
    CompanionKind,
    LabourRequirementCompanion,
    ResourcesHolder,
)
from allocator.tree import add_months
from models import (
    ActivityStatus,
    IntervalTimer,
    LabourGroup,
    LabourIndividual,
    LabourRequirement,
    MonthlyTimer,
    Sex,
)


def _holder(*activities):
    holder = ActivitiesHolder(ResourcesHolder(), activities=list(activities), name="Farm activities")
    ledger = AllocationLedger()
    holder.add_listener(ledger)
    return holder, ledger


class TestAddMonths:
    def test_within_year(self):
        assert add_months(date(2025, 1, 15), 2) == date(2025, 3, 1)

    def test_across_year(self):
        assert add_months(date(2025, 11, 1), 3) == date(2026, 2, 1)


class TestTree:
    def test_qualified_names_and_find(self):
        shear = Activity("Shear")
        holder, _ = _holder(Activity("Sheep", children=[shear]))
        assert shear.qualified_name == "Sheep.Shear"
        assert holder.find("Sheep.Shear") is shear
        assert holder.find("Cattle") is None

    def test_children_attached_to_holder(self):
        shear = Activity("Shear")
        holder, _ = _holder(Activity("Sheep", children=[shear]))
        assert shear.holder is holder
        assert shear.resources is holder.resources

    def test_depth_first_order(self):
        holder, _ = _holder(
            Activity("A", children=[Activity("A1"), Activity("A2")]),
            Activity("B"),
        )
        assert [a.name for a in holder.all_activities()] == ["A", "A1", "A2", "B"]

    def test_farm_multiplier_reaches_activities(self):
        activity = Activity("Feed")
        ActivitiesHolder(ResourcesHolder(), activities=[activity], farm_multiplier=2.0)
        assert activity.farm_multiplier == 2.0


class TestRun:
    def test_run_reports_every_month(self):
        seen = []
        activity = Activity("Feed", behaviour=CallbackBehaviour(perform=lambda a: seen.append(a.current_date)))
        holder, ledger = _holder(activity)

        holder.run(date(2025, 1, 1), 3)

        assert seen == [date(2025, 1, 1), date(2025, 2, 1), date(2025, 3, 1)]
        assert ledger.get_statuses("Feed") == [ActivityStatus.SUCCESS] * 3

    def test_due_timers_reported(self):
        activity = Activity(
            "Shear",
            timers=[MonthlyTimer(name="Spring", months=[9])],
        )
        holder, ledger = _holder(activity)
        holder.run(date(2025, 8, 1), 2)

        assert ledger.get_statuses("Spring") == [ActivityStatus.TIMER]
        assert ledger.get_statuses("Shear") == [ActivityStatus.IGNORED, ActivityStatus.SUCCESS]

    def test_interval_timer_on_folder(self):
        seen = []
        child = Activity("Pay", behaviour=CallbackBehaviour(perform=lambda a: seen.append(a.current_date.month)))
        folder = Activity("Accounts", children=[child], timers=[IntervalTimer(start=date(2025, 1, 1), interval_months=2)])
        holder, _ = _holder(folder)
        holder.run(date(2025, 1, 1), 6)
        assert seen == [1, 3, 5]

    def test_status_reset_each_step(self):
        activity = Activity("Shear", timers=[MonthlyTimer(months=[1])])
        holder, _ = _holder(activity)
        holder.start_of_simulation()
        holder.step(date(2025, 1, 1))
        assert activity.status == ActivityStatus.SUCCESS
        holder.step(date(2025, 2, 1))
        assert activity.status == ActivityStatus.IGNORED


class TestListeners:
    def test_listener_registered_by_capability(self):
        class PerformedOnly:
            def report_performed(self, record):
                pass

        holder, _ = _holder()
        holder.add_listener(PerformedOnly())
        assert len(holder.performed_listeners) == 2
        assert len(holder.shortfall_listeners) == 1


class TestLabourMarkers:
    def test_claims_cleared_each_timestep(self):
        person = LabourIndividual(id="a", name="A", age=30, sex=Sex.MALE, available_days=10)
        requirement = LabourRequirement(max_per_person=4, groups=LabourGroup())
        activity = Activity(
            "Shear",
            behaviour=CallbackBehaviour(metrics=lambda a: {(CompanionKind.LABOUR_REQUIREMENT, "", ""): 4}),
            companions=[LabourRequirementCompanion(requirement)],
        )
        holder = ActivitiesHolder(ResourcesHolder(labour=[person]), activities=[activity])

        holder.run(date(2025, 1, 1), 2)

        assert person.available_days == 2
        assert activity.status == ActivityStatus.SUCCESS
