"""Register the location hierarchy rebuild deployment programmatically.

The deployment runs whenever a ``location-hierarchy.locations.updated``
event is emitted, plus a nightly reconciliation run.

Usage:
    PREFECT_API_URL=http://localhost:4200/api uv run python deployments/locations_rebuild/deploy.py
"""

from dotenv import load_dotenv
from flow import locations_rebuild_flow
from prefect.events import DeploymentEventTrigger

from location_hierarchy.config import LOCATIONS_UPDATED_EVENT

if __name__ == "__main__":
    load_dotenv()
    locations_rebuild_flow.deploy(
        name="locations-rebuild",
        work_pool_name="default",
        cron="0 2 * * *",
        triggers=[DeploymentEventTrigger(expect={LOCATIONS_UPDATED_EVENT})],
    )
