"""
Demo scenario generator for the Resource Allocation Engine.
Builds a small mixed farm: a family and hired labour pool, a bank account,
a feed store, a grain store, an emissions store and a market to buy from.
The same seed always gives the same farm.
"""

import json
import logging
import random
from datetime import date
from typing import Dict, List, Optional

from models import (
    AllocationStyle,
    FilterOperator,
    FilterRule,
    IntervalTimer,
    LabourGroup,
    LabourIndividual,
    LabourLimitStyle,
    LabourRequirement,
    MonthlyTimer,
    ResourceGroup,
    Sex,
    ShortfallPolicy,
    StockResourceType,
    Transmutation,
)
from allocator import (
    ActivitiesHolder,
    Activity,
    ActivityBehaviour,
    ActivityFee,
    CallbackBehaviour,
    CompanionKind,
    CompanionLabels,
    GreenhouseGasEmission,
    LabourRequirementCompanion,
    ResourcesHolder,
)

logger = logging.getLogger(__name__)

# Pydantic model for each cached list
RESOURCE_MODELS = {
    "stocks": StockResourceType,
    "market_stocks": StockResourceType,
    "labour": LabourIndividual,
    "transmutations": Transmutation,
}


class HerdFeedingBehaviour(ActivityBehaviour):
    """Feeds a herd from a named store. Head count is the companion metric."""

    def __init__(self, head: int, kg_per_head: float, store: str):
        self.head = head
        self.kg_per_head = kg_per_head
        self.store = store
        self.fed_kg = 0.0

    def define_companion_labels(self, kind):
        return CompanionLabels(identifiers=[], measures=["per head"])

    def request_resources(self, activity):
        head = self.head * activity.farm_multiplier
        for companion in activity.registry.components():
            activity.set_companion_value(companion.kind, companion.identifier, "per head", head)
        return [activity.new_request(
            resource_type=ResourceGroup.ANIMAL_FOOD_STORE,
            resource_type_name=self.store,
            required=head * self.kg_per_head,
            allow_transmutation=True,
        )]

    def perform_tasks(self, activity):
        feed = [r for r in activity.resource_request_list if r.resource_type == ResourceGroup.ANIMAL_FOOD_STORE]
        fed = sum(r.provided for r in feed)
        self.fed_kg += fed
        activity.set_status_success_or_partial(
            shortfall_occurred=any(r.provided < r.required for r in feed)
        )


class FixedExpenseBehaviour(ActivityBehaviour):
    """Pays a fixed amount from a finance account."""

    def __init__(self, amount: float, account: str):
        self.amount = amount
        self.account = account

    def request_resources(self, activity):
        return [activity.new_request(
            resource_type=ResourceGroup.FINANCE,
            resource_type_name=self.account,
            required=self.amount,
        )]


class CropHarvestBehaviour(ActivityBehaviour):
    """
    Harvest needs labour by identifier: a 'harvest' crew and a 'cartage'
    driver, both per hectare. Yield is scaled by the share of labour found
    and goes into a product store. Manual children (e.g. fuel) are run once
    the crop is in.
    """

    def __init__(self, hectares: float, tonnes_per_ha: float, store: str):
        self.hectares = hectares
        self.tonnes_per_ha = tonnes_per_ha
        self.store = store
        self.harvested = 0.0

    def define_companion_labels(self, kind):
        if kind == CompanionKind.LABOUR_REQUIREMENT:
            return CompanionLabels(identifiers=["harvest", "cartage"], measures=["per ha"])
        return CompanionLabels()

    def request_resources(self, activity):
        for identifier in ("harvest", "cartage"):
            if activity.companion_models_by_identifier(CompanionKind.LABOUR_REQUIREMENT, identifier):
                activity.set_companion_value(CompanionKind.LABOUR_REQUIREMENT, identifier, "per ha", self.hectares)
        return None

    def adjust_resources(self, activity):
        proportion = activity.scale_to_shortfall_proportion()
        if proportion < 1.0:
            logger.info(f"{activity.qualified_name}: short of harvest labour, requests scaled to {proportion:.0%}")

    def perform_tasks(self, activity):
        labour = [r for r in activity.resource_request_list if r.resource_type == ResourceGroup.LABOUR]
        proportion = min((r.provided / r.required for r in labour if r.required > 0), default=1.0)
        tonnes = self.hectares * self.tonnes_per_ha * proportion
        target = activity.resources.find_by_full_name(self.store)
        if target is not None:
            target.add(tonnes)
        self.harvested += tonnes

        for child in activity.children:
            if child.allocation_style == AllocationStyle.MANUAL:
                child.manage_resources_and_tasks()

        activity.set_status_success_or_partial(shortfall_occurred=proportion < 1.0)


class ScenarioFactory:
    """Deterministic scenario generator (seeded)."""

    def __init__(self, seed: int = 42):
        self.random = random.Random(seed)

    def generate_labour(self, family: int = 3, hired: int = 2) -> List[LabourIndividual]:
        people = []
        skills = ["cattle", "cropping", "general"]
        for i in range(family):
            people.append(LabourIndividual(
                id=f"fam_{i + 1:02d}",
                name=f"Family member {i + 1}",
                age=self.random.randint(16, 60),
                sex=self.random.choice(list(Sex)),
                attributes={"skill": skills[i % len(skills)]},
                available_days=20,
                pay_rate=0.0,
            ))
        for i in range(hired):
            people.append(LabourIndividual(
                id=f"hire_{i + 1:02d}",
                name=f"Hired hand {i + 1}",
                age=self.random.randint(18, 50),
                sex=self.random.choice(list(Sex)),
                hired=True,
                attributes={"skill": "general", "licence": "truck" if i == 0 else "none"},
                available_days=22,
                pay_rate=180.0,
            ))
        logger.info(f"Generated {len(people)} labour individuals ({hired} hired)")
        return people

    def generate_resources(self) -> Dict[str, list]:
        stocks = [
            StockResourceType(name="Bank", group=ResourceGroup.FINANCE, amount=25000.0, units="$", price_per_unit=1.0),
            StockResourceType(name="Hay", group=ResourceGroup.ANIMAL_FOOD_STORE, amount=6000.0, units="kg", price_per_unit=0.3),
            StockResourceType(name="Grain", group=ResourceGroup.PRODUCT_STORE, amount=0.0, units="t"),
            StockResourceType(name="Methane", group=ResourceGroup.GREENHOUSE_GASES, amount=0.0, units="kg CH4"),
        ]
        market_stocks = [
            StockResourceType(name="Hay", group=ResourceGroup.ANIMAL_FOOD_STORE, amount=50000.0, units="kg", price_per_unit=0.35),
            StockResourceType(name="Diesel", group=ResourceGroup.EQUIPMENT, amount=2000.0, units="L", price_per_unit=1.9),
        ]
        transmutations = [
            Transmutation(target="AnimalFoodStore.Hay", source="Finance.Bank", source_per_unit=0.35),
        ]
        return {
            "stocks": stocks,
            "market_stocks": market_stocks,
            "labour": self.generate_labour(),
            "transmutations": transmutations,
        }

    def build_holder(
        self,
        resources: Optional[Dict[str, list]] = None,
        start_date: date = date(2025, 1, 1),
        farm_multiplier: float = 1.0
    ) -> ActivitiesHolder:
        """Wire the resources into a farm and market and build the activity tree."""
        resources = resources or self.generate_resources()

        market = ResourcesHolder(name="Market", stocks=resources["market_stocks"], is_market=True)
        ActivitiesHolder(market, name="Market activities")
        farm = ResourcesHolder(
            name="Farm",
            stocks=resources["stocks"],
            labour=resources["labour"],
            transmutations=resources["transmutations"],
            market=market,
        )

        cattle_labour = LabourRequirement(
            name="Cattle work",
            days_per_unit=0.1,
            max_per_person=10,
            min_per_person=1,
            measure="per head",
            groups=LabourGroup(
                name="Cattle hands",
                rules=[FilterRule(parameter="skill", value="cattle")],
                child=LabourGroup(name="Anyone over 16", rules=[
                    FilterRule(parameter="age", operator=FilterOperator.GREATER_OR_EQUAL, value=16)
                ]),
            ),
        )
        harvest_crew = LabourRequirement(
            name="Harvest crew",
            identifier="harvest",
            measure="per ha",
            days_per_unit=0.5,
            max_per_person=0.5,
            min_per_person=0.1,
            limit_style=LabourLimitStyle.PROPORTION_OF_REQUIRED,
            policy=ShortfallPolicy.USE_AVAILABLE_WITH_IMPLICATIONS,
            groups=LabourGroup(name="Anyone"),
        )
        cartage = LabourRequirement(
            name="Grain cartage",
            identifier="cartage",
            measure="per ha",
            days_per_unit=0.05,
            max_per_person=5,
            groups=LabourGroup(name="Truck licence", rules=[FilterRule(parameter="licence", value="truck")]),
        )

        herd = Activity(
            "Feed herd",
            behaviour=HerdFeedingBehaviour(head=120, kg_per_head=40, store="Hay"),
            policy=ShortfallPolicy.USE_AVAILABLE_RESOURCES,
            companions=[
                LabourRequirementCompanion(cattle_labour),
                ActivityFee(name="Vet levy", amount_per_unit=2.5, account="Bank", measure="per head"),
                GreenhouseGasEmission(name="Enteric methane", rate_per_unit=7.5, store="GreenhouseGases.Methane", measure="per head"),
            ],
        )
        fuel = Activity(
            "Buy fuel",
            behaviour=CallbackBehaviour(request=lambda a: [a.new_request(
                resource_type=ResourceGroup.EQUIPMENT,
                resource_type_name="Diesel",
                required=300.0,
            )]),
            allocation_style=AllocationStyle.MANUAL,
        )
        harvest = Activity(
            "Harvest wheat",
            behaviour=CropHarvestBehaviour(hectares=80, tonnes_per_ha=2.2, store="ProductStore.Grain"),
            timers=[MonthlyTimer(name="Harvest time", months=[11, 12])],
            # Cartage first: the driver is also eligible for the crew
            companions=[LabourRequirementCompanion(cartage), LabourRequirementCompanion(harvest_crew)],
            children=[fuel],
        )
        lease = Activity(
            "Pay lease",
            behaviour=FixedExpenseBehaviour(amount=4000, account="Bank"),
            policy=ShortfallPolicy.SKIP_ACTIVITY,
            timers=[IntervalTimer(name="Quarterly", start=start_date, interval_months=3)],
        )

        farm_folder = Activity("Farm", children=[herd, harvest, lease])
        return ActivitiesHolder(farm, activities=[farm_folder], name="Farm activities", farm_multiplier=farm_multiplier)


def save_resources(resources: Dict[str, list], filename: str) -> None:
    """Cache generated resources so a run can be repeated exactly."""
    serializable = {key: [item.model_dump(mode='json') for item in items] for key, items in resources.items()}
    with open(filename, 'w') as f:
        json.dump(serializable, f, indent=2)
    logger.info(f"Saved scenario resources to {filename}")


def load_resources(filename: str) -> Optional[Dict[str, list]]:
    """Rebuild cached resources. None when the cache is missing or unreadable."""
    try:
        with open(filename, 'r') as f:
            data = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        logger.warning(f"Cache file {filename} not found or invalid. Falling back to generator.")
        return None

    resources = {}
    for key, model in RESOURCE_MODELS.items():
        resources[key] = [model.model_validate(item) for item in data.get(key, [])]
    logger.info(f"Loaded {sum(len(v) for v in resources.values())} cached resource items from {filename}")
    return resources
