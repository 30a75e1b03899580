"""Two-phase, cascade-aware deletion coordinator.

State machine per attempt::

    IDLE -> CONFIRM_BASIC -> NON_CASCADING_DELETE_SENT -> DONE
                                                       -> CASCADE_REQUIRED -> CONFIRM_CASCADE
    CONFIRM_CASCADE -> CASCADING_DELETE_SENT -> DONE | FAILED
    CONFIRM_CASCADE -- impact changed since the prompt --> CONFIRM_CASCADE
    CONFIRM_BASIC | CONFIRM_CASCADE -- decline --> IDLE

Each transition returns a new frozen ``DeletionAttempt`` (``model_copy``);
nothing is mutated in place.  At most one attempt per ``(kind, id)`` is
open at a time.  Every attempt that sends a request ends with the
``on_settled`` callback, which the console uses to rebuild from the store.
An attempt interrupted by any other error (or cancellation) gives up its
slot before the error propagates.
"""

from __future__ import annotations

import inspect
import itertools
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from location_hierarchy.exceptions import (
    ConcurrentDeleteConflict,
    DeleteConflict,
    DeleteFailure,
)
from location_hierarchy.hierarchy import HierarchyIndex
from location_hierarchy.impact import ImpactSummary, analyze, basic_prompt, describe_impact, from_conflict
from location_hierarchy.models import LocationKind, NodeRef
from location_hierarchy.store import CascadeMode, DeleteResult, LocationStoreClient

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class DeletionState(StrEnum):
    IDLE = "idle"
    CONFIRM_BASIC = "confirm_basic"
    NON_CASCADING_DELETE_SENT = "non_cascading_delete_sent"
    CASCADE_REQUIRED = "cascade_required"
    CONFIRM_CASCADE = "confirm_cascade"
    CASCADING_DELETE_SENT = "cascading_delete_sent"
    DONE = "done"
    FAILED = "failed"


AWAITING_CONFIRMATION = frozenset({DeletionState.CONFIRM_BASIC, DeletionState.CONFIRM_CASCADE})


class DeletionAttempt(BaseModel):
    """Immutable snapshot of one deletion attempt.

    Attributes:
        ref: The node being deleted.
        name: Display name captured when the attempt began.
        state: Current state.
        history: Every state entered so far, in order.
        prompt: Confirmation text to show while awaiting confirmation.
        impact: Impact snapshot; the cascade prompt is rendered from it.
        calls: Delete requests issued, in order, as ``(ref, cascade)``.
        results: Results of the requests that succeeded.
        error: Verbatim failure message when ``state`` is FAILED.
        serial: Distinguishes this attempt from later ones for the same node.
    """

    model_config = ConfigDict(frozen=True)

    ref: NodeRef
    name: str
    state: DeletionState = DeletionState.IDLE
    history: tuple[DeletionState, ...] = ()
    prompt: str = ""
    impact: ImpactSummary | None = None
    calls: tuple[tuple[NodeRef, bool], ...] = ()
    results: tuple[DeleteResult, ...] = ()
    error: str | None = None
    serial: int = 0

    @property
    def awaiting_confirmation(self) -> bool:
        return self.state in AWAITING_CONFIRMATION

    def advance(self, state: DeletionState, **changes: object) -> DeletionAttempt:
        """Return a copy in *state* with *changes* applied."""
        return self.model_copy(update={"state": state, "history": (*self.history, state), **changes})


def plan_cascade(ref: NodeRef, index: HierarchyIndex) -> list[NodeRef]:
    """Bottom-up delete order for *ref* and its known descendants.

    Locations first, then barangays, then cities, then the target itself,
    so no parent is deleted before any of its children.  Within a kind the
    index order is kept.
    """
    below = sorted(index.descendants(ref), key=lambda item: -item.kind.precedence)
    return [item.ref for item in below] + [ref]


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------

SettledCallback = Callable[[DeletionAttempt], Awaitable[None]]
ConfirmCallback = Callable[[DeletionAttempt], bool | Awaitable[bool]]


class DeletionCoordinator:
    """Runs deletion attempts against a record store.

    Args:
        client: Record store client used for delete requests.
        index_provider: Returns the current hierarchy index.
        cascade_mode: ``CLIENT`` deletes node by node bottom-up;
            ``SERVER`` sends one ``cascade=true`` request.
        on_settled: Awaited once an attempt that sent a request reaches
            DONE or FAILED.
    """

    def __init__(
        self,
        client: LocationStoreClient,
        index_provider: Callable[[], HierarchyIndex],
        cascade_mode: CascadeMode = CascadeMode.CLIENT,
        on_settled: SettledCallback | None = None,
    ) -> None:
        self._client = client
        self._index_provider = index_provider
        self._cascade_mode = CascadeMode(cascade_mode)
        self._on_settled = on_settled
        self._open: dict[tuple[LocationKind, int], DeletionAttempt] = {}
        self._serials = itertools.count(1)

    @property
    def cascade_mode(self) -> CascadeMode:
        return self._cascade_mode

    def get(self, kind: LocationKind, node_id: int) -> DeletionAttempt | None:
        """The open attempt for a node, if any."""
        return self._open.get((kind, node_id))

    def in_flight(self) -> list[DeletionAttempt]:
        return list(self._open.values())

    # -- transitions ---------------------------------------------------------

    def begin(self, kind: LocationKind, node_id: int) -> DeletionAttempt:
        """Open an attempt and return it in CONFIRM_BASIC.

        The impact summary is computed here, from the index as it is now,
        before any request is sent.

        Raises:
            ConcurrentDeleteConflict: An attempt for the same node is open.
        """
        ref = NodeRef(kind=LocationKind(kind), id=node_id)
        key = (ref.kind, ref.id)
        if key in self._open:
            logger.warning("Rejected concurrent delete for %s", ref, extra=_log_context(ref))
            raise ConcurrentDeleteConflict(ref)

        impact = analyze(ref, self._index_provider())
        name = impact.name or f"{ref.kind} {ref.id}"
        attempt = DeletionAttempt(
            ref=ref, name=name, history=(DeletionState.IDLE,), impact=impact, serial=next(self._serials)
        )
        attempt = attempt.advance(DeletionState.CONFIRM_BASIC, prompt=basic_prompt(name))
        self._open[key] = attempt
        logger.info("Delete requested for %s", ref, extra=_log_context(ref))
        return attempt

    async def confirm(self, attempt: DeletionAttempt) -> DeletionAttempt:
        """Accept the pending confirmation and run the next phase."""
        current = self._current(attempt)
        if not current.awaiting_confirmation:
            raise ValueError(f"Cannot confirm a deletion in state {current.state}")
        try:
            if current.state is DeletionState.CONFIRM_BASIC:
                return await self._run_non_cascading(current)
            return await self._run_cascading(current)
        except BaseException:
            self._abandon(current)
            raise

    def decline(self, attempt: DeletionAttempt) -> DeletionAttempt:
        """Reject the pending confirmation; nothing is sent and nothing changes."""
        current = self._current(attempt)
        if not current.awaiting_confirmation:
            raise ValueError(f"Cannot decline a deletion in state {current.state}")
        declined = current.advance(DeletionState.IDLE, prompt="")
        self._close(declined)
        logger.info("Delete of %s declined", current.ref, extra=_log_context(current.ref))
        return declined

    async def request_delete(
        self,
        kind: LocationKind,
        node_id: int,
        confirm: ConfirmCallback,
    ) -> DeletionAttempt:
        """Drive one attempt to completion, asking *confirm* at each prompt.

        Args:
            kind: Kind of the node to delete.
            node_id: Id of the node.
            confirm: Receives the attempt (with ``prompt`` set) and returns
                True to proceed; may be sync or async.

        Returns:
            The settled attempt: DONE, FAILED, or IDLE when declined.
        """
        attempt = self.begin(kind, node_id)
        try:
            while attempt.awaiting_confirmation:
                answer = confirm(attempt)
                if inspect.isawaitable(answer):
                    answer = await answer
                attempt = await self.confirm(attempt) if answer else self.decline(attempt)
        except BaseException:
            self._abandon(attempt)
            raise
        return attempt

    # -- phases --------------------------------------------------------------

    async def _run_non_cascading(self, attempt: DeletionAttempt) -> DeletionAttempt:
        local = attempt.impact
        if local is not None and local.known and not local.is_empty:
            return self._require_cascade(attempt, local)

        ref = attempt.ref
        attempt = attempt.advance(
            DeletionState.NON_CASCADING_DELETE_SENT, prompt="", calls=(*attempt.calls, (ref, False))
        )
        self._open[(ref.kind, ref.id)] = attempt
        try:
            result = await self._client.delete(ref.kind, ref.id, cascade=False)
        except DeleteConflict as exc:
            return self._require_cascade(attempt, from_conflict(exc.info, attempt.name))
        except DeleteFailure as exc:
            return await self._fail(attempt, exc.message)
        return await self._finish(attempt.model_copy(update={"results": (result,)}))

    def _require_cascade(self, attempt: DeletionAttempt, impact: ImpactSummary) -> DeletionAttempt:
        attempt = attempt.advance(DeletionState.CASCADE_REQUIRED, impact=impact)
        attempt = attempt.advance(DeletionState.CONFIRM_CASCADE, prompt=describe_impact(impact))
        self._open[(attempt.ref.kind, attempt.ref.id)] = attempt
        logger.info(
            "Delete of %s needs cascade confirmation: %s",
            attempt.ref,
            {str(kind): n for kind, n in impact.counts().items()},
            extra=_log_context(attempt.ref),
        )
        return attempt

    async def _run_cascading(self, attempt: DeletionAttempt) -> DeletionAttempt:
        ref = attempt.ref
        index = self._index_provider()
        live = analyze(ref, index)
        if live.known and not live.is_empty and attempt.impact is not None:
            if live.counts() != attempt.impact.counts():
                return self._reconfirm_cascade(attempt, live)

        attempt = attempt.advance(DeletionState.CASCADING_DELETE_SENT, prompt="")
        self._open[(ref.kind, ref.id)] = attempt

        plan = plan_cascade(ref, index)
        # Stale local data: the store knows children we cannot enumerate.
        server_side = self._cascade_mode is CascadeMode.SERVER or len(plan) == 1
        steps = [(ref, True)] if server_side else [(step, False) for step in plan]

        results: list[DeleteResult] = []
        for step, cascade in steps:
            attempt = attempt.model_copy(update={"calls": (*attempt.calls, (step, cascade))})
            try:
                results.append(await self._client.delete(step.kind, step.id, cascade=cascade))
            except (DeleteConflict, DeleteFailure) as exc:
                attempt = attempt.model_copy(update={"results": tuple(results)})
                return await self._fail(attempt, str(exc))
        return await self._finish(attempt.model_copy(update={"results": tuple(results)}))

    def _reconfirm_cascade(self, attempt: DeletionAttempt, impact: ImpactSummary) -> DeletionAttempt:
        attempt = attempt.advance(DeletionState.CONFIRM_CASCADE, impact=impact, prompt=describe_impact(impact))
        self._open[(attempt.ref.kind, attempt.ref.id)] = attempt
        logger.warning(
            "Impact of deleting %s changed before the cascade was sent: %s",
            attempt.ref,
            {str(kind): n for kind, n in impact.counts().items()},
            extra=_log_context(attempt.ref),
        )
        return attempt

    async def _finish(self, attempt: DeletionAttempt) -> DeletionAttempt:
        done = attempt.advance(DeletionState.DONE)
        self._close(done)
        logger.info(
            "Deleted %s (%d request(s))", done.ref, len(done.calls), extra=_log_context(done.ref)
        )
        await self._settled(done)
        return done

    async def _fail(self, attempt: DeletionAttempt, message: str) -> DeletionAttempt:
        failed = attempt.advance(DeletionState.FAILED, error=message)
        self._close(failed)
        logger.error("Delete of %s failed: %s", failed.ref, message, extra=_log_context(failed.ref))
        await self._settled(failed)
        return failed

    # -- helpers -------------------------------------------------------------

    def _current(self, attempt: DeletionAttempt) -> DeletionAttempt:
        current = self._open.get((attempt.ref.kind, attempt.ref.id))
        if current is None:
            raise ValueError(f"No open deletion for {attempt.ref}")
        return current

    def _close(self, attempt: DeletionAttempt) -> None:
        self._open.pop((attempt.ref.kind, attempt.ref.id), None)

    def _abandon(self, attempt: DeletionAttempt) -> None:
        key = (attempt.ref.kind, attempt.ref.id)
        current = self._open.get(key)
        if current is not None and current.serial == attempt.serial:
            del self._open[key]
            logger.error(
                "Delete of %s interrupted in state %s", attempt.ref, current.state, extra=_log_context(attempt.ref)
            )

    async def _settled(self, attempt: DeletionAttempt) -> None:
        if self._on_settled is not None:
            await self._on_settled(attempt)


def _log_context(ref: NodeRef) -> dict[str, object]:
    return {"kind": str(ref.kind), "node_id": ref.id}
