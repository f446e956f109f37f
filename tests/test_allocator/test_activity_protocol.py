"""Tests for the per-timestep activity protocol."""

from datetime import date

import pytest

from allocator import (
    ActivitiesHolder,
    Activity,
    AllocationLedger,
    CallbackBehaviour,
    ConfigurationError,
    ResourcesHolder,
    ScaledShortfallBehaviour,
    ShortfallError,
)
from models import (
    ActivityStatus,
    AllocationStyle,
    MonthlyTimer,
    ResourceGroup,
    ResourceRequest,
    ShortfallPolicy,
    StockResourceType,
    Transmutation,
)

JAN = date(2025, 1, 1)


def _stock(name: str, group: ResourceGroup, amount: float) -> StockResourceType:
    return StockResourceType(name=name, group=group, amount=amount)


def _holder(stocks=None, transmutations=None, market=None):
    resources = ResourcesHolder(name="Farm", stocks=stocks, transmutations=transmutations, market=market)
    holder = ActivitiesHolder(resources, name="Farm activities")
    ledger = AllocationLedger()
    holder.add_listener(ledger)
    return holder, ledger


def _feeding(required: float, policy: ShortfallPolicy, performed: list, allow_transmutation: bool = False):
    """Activity asking for hay each timestep and recording when its tasks run."""
    return Activity(
        "Feed",
        behaviour=CallbackBehaviour(
            request=lambda a: [a.new_request(
                resource_type=ResourceGroup.ANIMAL_FOOD_STORE,
                resource_type_name="Hay",
                required=required,
                allow_transmutation=allow_transmutation,
            )],
            perform=lambda a: performed.append(a.current_date),
        ),
        policy=policy,
    )


def _run(holder, *activities, when=JAN):
    for activity in activities:
        holder.add_activity(activity)
    holder.start_of_simulation()
    holder.step(when)


class TestUntrackedResources:
    def test_untracked_request_is_fully_provided(self):
        holder, ledger = _holder()
        performed = []
        activity = Activity(
            "Irrigate",
            behaviour=CallbackBehaviour(
                request=lambda a: [a.new_request(resource_type=ResourceGroup.WATER, required=10)],
                perform=lambda a: performed.append(True),
            ),
        )
        _run(holder, activity)

        request = activity.resource_request_list[0]
        assert request.available == 10
        assert request.provided == 10
        assert activity.status == ActivityStatus.SUCCESS
        assert performed == [True]
        assert ledger.shortfalls == []

    def test_no_requests_still_performs(self):
        holder, _ = _holder()
        performed = []
        activity = Activity("Inspect", behaviour=CallbackBehaviour(perform=lambda a: performed.append(True)))
        _run(holder, activity)
        assert performed == [True]
        assert activity.status == ActivityStatus.SUCCESS


class TestShortfallPolicies:
    def test_use_available_takes_what_there_is(self):
        hay = _stock("Hay", ResourceGroup.ANIMAL_FOOD_STORE, 5)
        holder, ledger = _holder(stocks=[hay])
        performed = []
        activity = _feeding(10, ShortfallPolicy.USE_AVAILABLE_RESOURCES, performed)
        _run(holder, activity)

        request = activity.resource_request_list[0]
        assert request.available == 5
        assert request.provided == 5
        assert 0 <= request.provided <= request.available
        assert hay.amount == 0
        assert activity.status == ActivityStatus.PARTIAL
        assert performed == [JAN]
        assert len(ledger.shortfalls) == 1
        assert ledger.shortfalls[0].deficit == 5

    def test_skip_activity_takes_nothing(self):
        hay = _stock("Hay", ResourceGroup.ANIMAL_FOOD_STORE, 5)
        holder, ledger = _holder(stocks=[hay])
        performed = []
        activity = _feeding(10, ShortfallPolicy.SKIP_ACTIVITY, performed)
        _run(holder, activity)

        assert activity.status == ActivityStatus.SKIPPED
        assert hay.amount == 5
        assert performed == []
        assert ledger.last_status("Feed") == ActivityStatus.SKIPPED

    def test_report_error_and_stop_raises(self):
        hay = _stock("Hay", ResourceGroup.ANIMAL_FOOD_STORE, 5)
        holder, ledger = _holder(stocks=[hay])
        performed = []
        folder = Activity("Paddock", children=[_feeding(10, ShortfallPolicy.REPORT_ERROR_AND_STOP, performed)])

        with pytest.raises(ShortfallError) as exc:
            _run(holder, folder)

        assert exc.value.activity_name == "Paddock.Feed"
        assert "Paddock.Feed" in str(exc.value)
        assert folder.children[0].status == ActivityStatus.CRITICAL
        assert hay.amount == 5
        assert performed == []
        # The shortfall is reported before the run stops
        assert len(ledger.shortfalls) == 1

    def test_check_twice_leaves_pool_unchanged(self):
        hay = _stock("Hay", ResourceGroup.ANIMAL_FOOD_STORE, 5)
        holder, _ = _holder(stocks=[hay])
        activity = holder.add_activity(Activity("Feed"))
        requests = [activity.new_request(
            resource_type=ResourceGroup.ANIMAL_FOOD_STORE,
            resource_type_name="Hay",
            required=10,
        )]

        activity.check_resources(requests)
        first = requests[0].available
        activity.check_resources(requests)

        assert first == 5
        assert requests[0].available == first
        assert requests[0].provided == 0
        assert hay.amount == 5

    def test_enough_resources_no_shortfall(self):
        hay = _stock("Hay", ResourceGroup.ANIMAL_FOOD_STORE, 50)
        holder, ledger = _holder(stocks=[hay])
        activity = _feeding(10, ShortfallPolicy.REPORT_ERROR_AND_STOP, [])
        _run(holder, activity)
        assert activity.status == ActivityStatus.SUCCESS
        assert hay.amount == 40
        assert ledger.shortfalls == []


def _hay_and_cash(behaviour_type):
    return Activity(
        "Feed",
        behaviour=behaviour_type(request=lambda a: [
            a.new_request(resource_type=ResourceGroup.ANIMAL_FOOD_STORE, resource_type_name="Hay", required=10),
            a.new_request(resource_type=ResourceGroup.FINANCE, resource_type_name="Bank", required=100),
        ]),
        policy=ShortfallPolicy.USE_AVAILABLE_WITH_IMPLICATIONS,
    )


class TestShortfallProportion:
    def test_default_only_warns(self):
        bank = _stock("Bank", ResourceGroup.FINANCE, 100)
        holder, _ = _holder(stocks=[_stock("Hay", ResourceGroup.ANIMAL_FOOD_STORE, 5), bank])
        activity = _hay_and_cash(CallbackBehaviour)
        _run(holder, activity)

        assert activity.minimum_shortfall_proportion() == pytest.approx(0.5)
        assert bank.amount == 0
        assert any("does not support resource shortfalls" in w for w in activity.warnings)
        assert activity.status == ActivityStatus.PARTIAL

    def test_scaled_behaviour_reduces_other_requests(self):
        bank = _stock("Bank", ResourceGroup.FINANCE, 100)
        holder, _ = _holder(stocks=[_stock("Hay", ResourceGroup.ANIMAL_FOOD_STORE, 5), bank])
        activity = _hay_and_cash(ScaledShortfallBehaviour)
        _run(holder, activity)

        cash = activity.resource_request_list[1]
        assert cash.required == pytest.approx(50)
        assert cash.provided == pytest.approx(50)
        assert bank.amount == pytest.approx(50)
        assert activity.warnings == []

    def test_scaled_untracked_request_stays_within_required(self):
        holder, _ = _holder(stocks=[_stock("Hay", ResourceGroup.ANIMAL_FOOD_STORE, 5)])
        activity = Activity(
            "Feed",
            behaviour=ScaledShortfallBehaviour(request=lambda a: [
                a.new_request(resource_type=ResourceGroup.ANIMAL_FOOD_STORE, resource_type_name="Hay", required=10),
                a.new_request(resource_type=ResourceGroup.WATER, required=8),
            ]),
            policy=ShortfallPolicy.USE_AVAILABLE_WITH_IMPLICATIONS,
        )
        _run(holder, activity)

        water = activity.resource_request_list[1]
        assert water.required == pytest.approx(4)
        assert water.available == pytest.approx(4)
        assert water.provided == pytest.approx(4)

    def test_no_implication_shortfall_is_one(self):
        assert Activity("Feed").minimum_shortfall_proportion() == 1.0


class TestTransmutation:
    def test_shortfall_covered_from_bank(self):
        hay = _stock("Hay", ResourceGroup.ANIMAL_FOOD_STORE, 100)
        bank = _stock("Bank", ResourceGroup.FINANCE, 1000)
        rule = Transmutation(target="AnimalFoodStore.Hay", source="Finance.Bank", source_per_unit=0.5)
        holder, ledger = _holder(stocks=[hay, bank], transmutations=[rule])
        activity = _feeding(300, ShortfallPolicy.REPORT_ERROR_AND_STOP, [], allow_transmutation=True)
        _run(holder, activity)

        request = activity.resource_request_list[0]
        assert request.provided == 300
        assert bank.amount == 900
        assert hay.amount == 0
        assert activity.status == ActivityStatus.SUCCESS
        assert ledger.shortfalls == []

    def test_transmutation_not_used_unless_allowed(self):
        hay = _stock("Hay", ResourceGroup.ANIMAL_FOOD_STORE, 100)
        bank = _stock("Bank", ResourceGroup.FINANCE, 1000)
        rule = Transmutation(target="AnimalFoodStore.Hay", source="Finance.Bank", source_per_unit=0.5)
        holder, _ = _holder(stocks=[hay, bank], transmutations=[rule])
        activity = _feeding(300, ShortfallPolicy.USE_AVAILABLE_RESOURCES, [])
        _run(holder, activity)
        assert bank.amount == 1000
        assert activity.resource_request_list[0].provided == 100


class TestMarketShortfalls:
    def test_market_shortfall_goes_to_market_listeners(self):
        market_resources = ResourcesHolder(
            name="Market",
            stocks=[_stock("Hay", ResourceGroup.ANIMAL_FOOD_STORE, 50)],
            is_market=True,
        )
        market_holder = ActivitiesHolder(market_resources, name="Market activities")
        market_ledger = AllocationLedger()
        market_holder.add_listener(market_ledger)

        holder, farm_ledger = _holder(market=market_resources)
        _run(holder, _feeding(100, ShortfallPolicy.USE_AVAILABLE_RESOURCES, []))

        assert farm_ledger.shortfalls == []
        assert len(market_ledger.shortfalls) == 1
        assert market_ledger.shortfalls[0].in_market
        assert market_ledger.shortfalls[0].activity_name == "Feed"


class TestTreeGating:
    def test_disable_cascades(self):
        child = Activity("Child")
        parent = Activity("Parent", children=[child])
        parent.enabled = False
        assert not child.enabled
        parent.enabled = True
        assert child.enabled

    def test_child_added_to_disabled_parent_is_disabled(self):
        parent = Activity("Parent", enabled=False)
        child = parent.add_child(Activity("Child"))
        assert not child.enabled

    def test_disabled_activity_is_ignored(self):
        holder, ledger = _holder()
        performed = []
        activity = Activity("Inspect", behaviour=CallbackBehaviour(perform=lambda a: performed.append(True)), enabled=False)
        _run(holder, activity)
        assert performed == []
        assert ledger.last_status("Inspect") == ActivityStatus.IGNORED

    def test_ancestor_timer_gates_child(self):
        holder, _ = _holder()
        performed = []
        child = Activity("Shear", behaviour=CallbackBehaviour(perform=lambda a: performed.append(a.current_date)))
        folder = Activity("Sheep", children=[child], timers=[MonthlyTimer(months=[3])])
        holder.add_activity(folder)
        holder.start_of_simulation()

        holder.step(date(2025, 1, 1))
        assert child.status == ActivityStatus.IGNORED
        holder.step(date(2025, 3, 1))
        assert performed == [date(2025, 3, 1)]
        assert child.timing_exists

    def test_manual_child_runs_only_when_parent_asks(self):
        holder, _ = _holder()
        performed = []
        manual = Activity(
            "Truck hire",
            behaviour=CallbackBehaviour(perform=lambda a: performed.append("manual")),
            allocation_style=AllocationStyle.MANUAL,
        )
        parent = Activity(
            "Harvest",
            behaviour=CallbackBehaviour(perform=lambda a: a.children[0].manage_resources_and_tasks()),
            children=[manual],
        )
        _run(holder, parent)
        assert performed == ["manual"]

        lone = Activity(
            "Idle truck",
            behaviour=CallbackBehaviour(perform=lambda a: performed.append("lone")),
            allocation_style=AllocationStyle.MANUAL,
        )
        holder.add_activity(lone)
        holder.step(JAN)
        assert "lone" not in performed


class TestRequestOwnership:
    def test_request_without_owner_rejected(self):
        holder, _ = _holder()
        activity = holder.add_activity(Activity("Feed"))
        with pytest.raises(ConfigurationError):
            activity.check_resources([ResourceRequest(required=1)])

    def test_request_with_unsupported_owner_rejected(self):
        holder, _ = _holder()
        activity = holder.add_activity(Activity("Feed"))
        with pytest.raises(ConfigurationError, match="Unsupported activity model"):
            activity.check_resources([ResourceRequest(required=1, activity_model=object())])

    def test_empty_check_is_not_needed(self):
        holder, _ = _holder()
        activity = holder.add_activity(Activity("Feed"))
        assert activity.check_resources([])
        assert activity.status == ActivityStatus.NOT_NEEDED


class TestStatusHelper:
    def test_not_needed_promoted_to_success(self):
        activity = Activity("Feed")
        activity.status = ActivityStatus.NOT_NEEDED
        activity.set_status_success_or_partial()
        assert activity.status == ActivityStatus.SUCCESS

    def test_shortfall_sets_partial(self):
        activity = Activity("Feed")
        activity.status = ActivityStatus.NOT_NEEDED
        activity.set_status_success_or_partial(shortfall_occurred=True)
        assert activity.status == ActivityStatus.PARTIAL

    def test_shortfall_with_report_error_raises(self):
        activity = Activity("Feed", policy=ShortfallPolicy.REPORT_ERROR_AND_STOP)
        with pytest.raises(ShortfallError):
            activity.set_status_success_or_partial(shortfall_occurred=True)

    def test_warning_is_kept(self):
        activity = Activity("Feed")
        activity.status = ActivityStatus.WARNING
        activity.set_status_success_or_partial()
        assert activity.status == ActivityStatus.WARNING
