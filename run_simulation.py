"""
Main Execution Script for the Resource Allocation Engine.
Builds (or reloads) the demo farm, runs it monthly and reports on what ran
and what ran short.
"""

import os
import sys
import logging
from datetime import date
import json

# Add current directory to path so imports work
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from generators.scenario_factory import ScenarioFactory, load_resources, save_resources
from allocator import AllocationLedger, AllocationError
from allocator.tree import add_months

# --- CONFIGURATION ---
START_DATE = date.fromisoformat(os.environ.get("ALLOCATOR_START_DATE", "2025-01-01"))
MONTHS = int(os.environ.get("ALLOCATOR_MONTHS", "12"))
LOG_LEVEL = os.environ.get("ALLOCATOR_LOG_LEVEL", "INFO")
CACHE_FILENAME = os.environ.get("ALLOCATOR_SCENARIO_CACHE", "scenario_data.json")
USE_CACHE = os.environ.get("ALLOCATOR_USE_CACHE", "1") != "0"  # Set to 0 to force a fresh scenario
EXPORT_FILENAME = "simulation_results.json"
# ---------------------

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger("Main")


def replenish_labour(labour, days: dict) -> None:
    """Reset everyone's days at the start of a month (the engine only draws down)."""
    for person in labour or []:
        person.available_days = days[person.id]


def export_results(ledger: AllocationLedger, holder, filename: str) -> None:
    """
    Serializes the ledger and the closing pool amounts to JSON.
    """
    logger.info(f"💾 Exporting results to {filename}...")

    data = {
        "performed": {},
        "shortfalls": [s.model_dump(mode='json') for s in ledger.shortfalls],
        "closing_stocks": {},
        "warnings": {},
    }

    # 1. Performed (Grouped by Date)
    for record in ledger.performed:
        date_key = record.date.isoformat() if record.date else "undated"
        data["performed"].setdefault(date_key, []).append(record.model_dump(mode='json'))

    # 2. Closing pools
    for stock in holder.resources.stocks:
        data["closing_stocks"][stock.full_name] = round(stock.amount, 2)

    # 3. Advisory warnings per activity
    for activity in holder.all_activities():
        if activity.warnings:
            data["warnings"][activity.qualified_name] = list(activity.warnings)

    with open(filename, 'w') as f:
        json.dump(data, f, indent=2, default=str)
    logger.info("✅ Results exported.")


def main():
    logger.info("🚀 Starting Resource Allocation Engine demo...")
    factory = ScenarioFactory()

    # --- PHASE 1: SCENARIO (Cache vs. Generator) ---
    resources = load_resources(CACHE_FILENAME) if USE_CACHE else None
    if not resources:
        logger.info("--- Phase 1: Generating scenario ---")
        resources = factory.generate_resources()
        save_resources(resources, CACHE_FILENAME)

    holder = factory.build_holder(resources, start_date=START_DATE)
    ledger = AllocationLedger()
    holder.add_listener(ledger)
    market_holder = holder.resources.market.activities_holder if holder.resources.market else None
    if market_holder is not None:
        market_holder.add_listener(ledger)

    # --- PHASE 2: SIMULATION ---
    logger.info(f"\n--- Phase 2: Running {MONTHS} months from {START_DATE.isoformat()} ---")
    monthly_days = {p.id: p.available_days for p in holder.resources.labour or []}

    holder.start_of_simulation()
    try:
        for offset in range(MONTHS):
            step_date = add_months(START_DATE, offset)
            replenish_labour(holder.resources.labour, monthly_days)
            logger.info(f"--- Timestep {step_date.isoformat()} ---")
            holder.step(step_date)
    except AllocationError as e:
        logger.error(f"❌ Simulation stopped: {e}")

    # --- PHASE 3: REPORTING ---
    stats = ledger.get_statistics()

    print("\n" + "=" * 50)
    print("📊 FINAL SIMULATION REPORT")
    print("=" * 50)
    print(stats)

    if stats.get('shortfall_count', 0) > 0:
        print("\n🔍 SHORTFALL ANALYSIS")
        for line in ledger.get_shortfall_report():
            print(f"❌ {line['resource']}: {line['total_deficit']} short over {line['occurrences']} requests")
            print(f"   Worst: {line['worst_activity']} (first {line['first_date']})")

    # --- PHASE 4: EXPORT ---
    export_results(ledger, holder, EXPORT_FILENAME)

    print("\n✅ Simulation Complete.")


if __name__ == "__main__":
    main()
