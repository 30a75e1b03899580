"""Location Cascade Delete.

Run the two-phase delete protocol for one node: a basic confirmation,
then, when the node has descendants, a second confirmation that lists
exactly what the cascade removes.  On success a
``location-hierarchy.locations.updated`` event is emitted so other
consumers rebuild.

Prefect approach: pause_flow_run() would need a server, so the two
confirmations are flow parameters fed through a mock approval task.
"""

import asyncio

from dotenv import load_dotenv
from prefect import flow, task
from prefect.artifacts import create_markdown_artifact
from prefect.events import emit_event
from pydantic import BaseModel

from location_hierarchy.config import EVENT_RESOURCE_ID, LOCATIONS_UPDATED_EVENT
from location_hierarchy.console import LocationConsole
from location_hierarchy.deletion import DeletionAttempt, DeletionState
from location_hierarchy.models import LocationKind
from location_hierarchy.store import get_location_store_credentials

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class DeletionOutcome(BaseModel):
    """What one delete run asked, sent and ended in."""

    kind: str
    node_id: int
    name: str
    state: str
    prompts: list[str]
    requests: list[str]
    error: str | None = None


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


@task
def mock_approval(attempt: DeletionAttempt, confirm: bool, confirm_cascade: bool) -> bool:
    """Answer a confirmation prompt from the flow parameters.

    Args:
        attempt: The attempt awaiting confirmation; ``prompt`` is set.
        confirm: Answer to the basic prompt.
        confirm_cascade: Answer to the cascade prompt.

    Returns:
        True to proceed.
    """
    cascade = attempt.state is DeletionState.CONFIRM_CASCADE
    approved = confirm_cascade if cascade else confirm
    print(f"PROMPT: {attempt.prompt}")
    print(f"Decision: {'CONFIRMED' if approved else 'DECLINED'}")
    return approved


@task
def emit_locations_updated(attempt: DeletionAttempt) -> None:
    """Tell other consumers the location records changed."""
    emit_event(
        event=LOCATIONS_UPDATED_EVENT,
        resource={"prefect.resource.id": EVENT_RESOURCE_ID},
        payload={
            "kind": str(attempt.ref.kind),
            "id": attempt.ref.id,
            "requests": len(attempt.calls),
        },
    )
    print(f"Emitted event '{LOCATIONS_UPDATED_EVENT}' for {attempt.ref}")


@task
def publish_outcome(attempt: DeletionAttempt, prompts: list[str]) -> DeletionOutcome:
    """Summarize the attempt as a markdown artifact."""
    requests = [f"DELETE {ref.kind} {ref.id} cascade={str(cascade).lower()}" for ref, cascade in attempt.calls]
    outcome = DeletionOutcome(
        kind=str(attempt.ref.kind),
        node_id=attempt.ref.id,
        name=attempt.name,
        state=str(attempt.state),
        prompts=prompts,
        requests=requests,
        error=attempt.error,
    )
    lines = [
        f"# Delete {attempt.ref.kind} {attempt.name}",
        "",
        f"**Result:** {outcome.state}",
        "",
        "## Prompts",
        "",
        *[f"- {p}" for p in prompts],
        "",
        f"## Requests ({len(requests)})",
        "",
        *[f"{i}. `{r}`" for i, r in enumerate(requests, 1)],
    ]
    if attempt.error:
        lines.extend(["", f"**Error:** {attempt.error}"])
    create_markdown_artifact(
        key="location-delete",
        markdown="\n".join(lines),
        description=f"Delete of {attempt.ref}",
    )
    return outcome


# ---------------------------------------------------------------------------
# Flow
# ---------------------------------------------------------------------------


@flow(name="locations_cascade_delete", log_prints=True)
async def locations_cascade_delete_flow(
    kind: str,
    node_id: int,
    confirm: bool = True,
    confirm_cascade: bool = False,
    credentials_block: str = "location-store",
) -> DeletionOutcome:
    """Delete one location node, cascading only when confirmed twice.

    Args:
        kind: region, city, barangay or location.
        node_id: Id of the node within its kind.
        confirm: Answer to the basic prompt.
        confirm_cascade: Answer to the cascade prompt, if one is shown.
        credentials_block: Name of the saved LocationStoreCredentials block.
    """
    console = LocationConsole.from_credentials(get_location_store_credentials(credentials_block))
    prompts: list[str] = []

    def answer(attempt: DeletionAttempt) -> bool:
        prompts.append(attempt.prompt)
        return mock_approval(attempt, confirm, confirm_cascade)

    try:
        await console.refresh()
        for warning in console.warnings:
            print(f"WARNING: {warning}")
        attempt = await console.request_delete(LocationKind(kind), node_id, answer)
    finally:
        await console.close()

    if attempt.state is DeletionState.DONE:
        emit_locations_updated(attempt)
    elif attempt.state is DeletionState.FAILED:
        print(f"Delete failed: {attempt.error}")
    else:
        print("Delete declined; nothing was changed")
    return publish_outcome(attempt, prompts)


if __name__ == "__main__":
    load_dotenv()
    asyncio.run(locations_cascade_delete_flow(kind="barangay", node_id=1))
