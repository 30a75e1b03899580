"""Record store adapter -- credentials block, async API client, delete results.

Provides ``LocationStoreCredentials`` (custom Block storing connection
details) and ``LocationStoreClient`` (async client that lists the four
record kinds and issues create/update/delete requests).  Payloads are
translated into the entity models at this boundary; nothing past it sees
raw JSON.

Every response is wrapped in the console API envelope::

    {"success": true, "data": ..., "message": "..."}
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any

import httpx
from prefect.blocks.core import Block
from pydantic import BaseModel, ConfigDict, Field, SecretStr, TypeAdapter, ValidationError

from location_hierarchy.config import (
    API_TOKEN_ENV,
    BASE_URL_ENV,
    CASCADE_MODE_ENV,
    DEFAULT_BASE_URL,
    DEFAULT_CASCADE_MODE,
    DEFAULT_TIMEOUT_SECONDS,
    TIMEOUT_ENV,
    env_default,
)
from location_hierarchy.exceptions import (
    DeleteConflict,
    DeleteFailure,
    FetchFailure,
    StoreRequestError,
)
from location_hierarchy.models import (
    RECORD_TYPES,
    Barangay,
    City,
    Location,
    LocationKind,
    NodeRef,
    Record,
    Region,
)

logger = logging.getLogger(__name__)

LIST_ENDPOINTS: dict[LocationKind, str] = {
    LocationKind.REGION: "/app-regions",
    LocationKind.CITY: "/app-cities",
    LocationKind.BARANGAY: "/app-barangays",
    LocationKind.LOCATION: "/app-locations",
}

# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------


class CascadeMode(StrEnum):
    """Who executes a cascade: the client node by node, or the server at once."""

    CLIENT = "client"
    SERVER = "server"


class DeleteStatus(StrEnum):
    DELETED = "deleted"
    ALREADY_ABSENT = "already_absent"


class DeleteResult(BaseModel):
    """Outcome of a delete request that did not fail."""

    model_config = ConfigDict(frozen=True)

    ref: NodeRef
    status: DeleteStatus
    cascade: bool = False
    message: str = ""


class ConflictInfo(BaseModel):
    """The server's own view of what blocks a non-cascading delete."""

    model_config = ConfigDict(frozen=True)

    ref: NodeRef
    name: str = ""
    city_count: int = 0
    barangay_count: int = 0
    location_count: int = 0
    message: str = ""

    @classmethod
    def from_payload(cls, ref: NodeRef, payload: dict[str, Any]) -> ConflictInfo:
        """Build from a 422 response body; missing counts default to 0."""
        data = payload.get("data") or {}
        return cls(
            ref=ref,
            name=str(data.get("name") or ""),
            city_count=int(data.get("city_count") or 0),
            barangay_count=int(data.get("barangay_count") or 0),
            location_count=int(data.get("location_count") or 0),
            message=str(payload.get("message") or ""),
        )


def _json_body(resp: httpx.Response) -> dict[str, Any]:
    """Parse a response body, returning {} for anything that is not a JSON object."""
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


# ---------------------------------------------------------------------------
# API Client
# ---------------------------------------------------------------------------


class LocationStoreClient:
    """Async client for the location record store.

    Wraps an ``httpx.AsyncClient`` and exposes one list call per kind plus
    create, update and delete.  Use as an async context manager or call
    ``.aclose()`` explicitly.
    """

    def __init__(
        self,
        base_url: str,
        api_token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_token = api_token
        self._timeout = timeout
        headers = {"Accept": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self._http = httpx.AsyncClient(base_url=self._base_url, headers=headers, timeout=timeout)

    def __reduce__(self) -> tuple[type, tuple[str, str | None, float]]:
        """Allow pickling so Prefect can hash this object for cache keys."""
        return (LocationStoreClient, (self._base_url, self._api_token, self._timeout))

    async def __aenter__(self) -> LocationStoreClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()

    # -- reads ---------------------------------------------------------------

    async def list_regions(self) -> list[Region]:
        return await self.list_records(LocationKind.REGION)  # type: ignore[return-value]

    async def list_cities(self) -> list[City]:
        return await self.list_records(LocationKind.CITY)  # type: ignore[return-value]

    async def list_barangays(self) -> list[Barangay]:
        return await self.list_records(LocationKind.BARANGAY)  # type: ignore[return-value]

    async def list_locations(self) -> list[Location]:
        return await self.list_records(LocationKind.LOCATION)  # type: ignore[return-value]

    async def list_records(self, kind: LocationKind) -> list[Record]:
        """Fetch every record of one kind.

        Args:
            kind: The record kind to list.

        Returns:
            Validated entity models, in server order.

        Raises:
            FetchFailure: On transport errors, error statuses, an
                unsuccessful envelope or records that do not validate.
        """
        try:
            resp = await self._http.get(LIST_ENDPOINTS[kind])
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise FetchFailure(kind, str(exc)) from exc

        if not isinstance(payload, dict) or not payload.get("success"):
            raise FetchFailure(kind, "Invalid response format")
        data = payload.get("data")
        if not isinstance(data, list):
            raise FetchFailure(kind, "Invalid response format")

        adapter = TypeAdapter(list[RECORD_TYPES[kind]])  # type: ignore[valid-type]
        try:
            records: list[Record] = adapter.validate_python(data)
        except ValidationError as exc:
            raise FetchFailure(kind, f"{exc.error_count()} invalid record field(s)") from exc
        logger.info("Fetched %d %s", len(records), kind.plural)
        return records

    # -- writes --------------------------------------------------------------

    async def delete(self, kind: LocationKind, node_id: int, cascade: bool = False) -> DeleteResult:
        """DELETE a single node.

        A 404 means the node is already gone and counts as success.

        Args:
            kind: Kind of the node.
            node_id: Id of the node within its kind.
            cascade: Ask the server to remove all descendants too.

        Returns:
            DeleteResult with status ``deleted`` or ``already_absent``.

        Raises:
            DeleteConflict: The node has children and ``cascade`` was False.
            DeleteFailure: Any other failure.
        """
        ref = NodeRef(kind=kind, id=node_id)
        try:
            resp = await self._http.delete(
                f"/locations/{kind}/{node_id}",
                params={"cascade": "true" if cascade else "false"},
            )
        except httpx.HTTPError as exc:
            raise DeleteFailure(f"Failed to delete {kind} {node_id}: {exc}") from exc

        if resp.status_code == 404:
            logger.info("%s already absent, treating delete as done", ref)
            return DeleteResult(ref=ref, status=DeleteStatus.ALREADY_ABSENT, cascade=cascade)

        body = _json_body(resp)
        data = body.get("data") if isinstance(body.get("data"), dict) else {}
        if resp.status_code == 422 and data.get("can_cascade"):
            raise DeleteConflict(ConflictInfo.from_payload(ref, body))
        if resp.status_code >= 400 or body.get("success") is False:
            message = body.get("message") or f"Failed to delete {kind} {node_id}"
            raise DeleteFailure(str(message), status_code=resp.status_code)

        return DeleteResult(
            ref=ref,
            status=DeleteStatus.DELETED,
            cascade=cascade,
            message=str(body.get("message") or ""),
        )

    async def create(self, kind: LocationKind, name: str, parent_id: int | None = None) -> Record:
        """POST a new node under *parent_id* (ignored for regions)."""
        return await self._write("POST", f"/locations/{kind}", kind, self._body(kind, name, parent_id))

    async def update(
        self,
        kind: LocationKind,
        node_id: int,
        name: str,
        parent_id: int | None = None,
    ) -> Record:
        """PUT a new name and parent for an existing node."""
        return await self._write(
            "PUT", f"/locations/{kind}/{node_id}", kind, self._body(kind, name, parent_id)
        )

    @staticmethod
    def _body(kind: LocationKind, name: str, parent_id: int | None) -> dict[str, Any]:
        body: dict[str, Any] = {"name": name}
        if kind.parent_field:
            body[kind.parent_field] = parent_id
        return body

    async def _write(self, method: str, path: str, kind: LocationKind, body: dict[str, Any]) -> Record:
        try:
            resp = await self._http.request(method, path, json=body)
        except httpx.HTTPError as exc:
            raise StoreRequestError(f"{method} {path} failed: {exc}") from exc

        payload = _json_body(resp)
        if resp.status_code >= 400 or not payload.get("success"):
            message = payload.get("message") or f"{method} {path} failed"
            raise StoreRequestError(str(message), status_code=resp.status_code)
        try:
            return RECORD_TYPES[kind].model_validate(payload.get("data"))  # type: ignore[return-value]
        except ValidationError as exc:
            raise StoreRequestError(f"{method} {path} returned an invalid {kind}") from exc


# ---------------------------------------------------------------------------
# Credentials Block
# ---------------------------------------------------------------------------


def _env_token() -> SecretStr | None:
    token = env_default(API_TOKEN_ENV, "")
    return SecretStr(token) if token else None


class LocationStoreCredentials(Block):
    """Credentials block for the location record store.

    Stores the API base URL, an optional bearer token, the request timeout
    and how cascades are executed, and returns a ``LocationStoreClient`` via
    ``get_client()``.  Unsaved defaults come from ``LOCATION_STORE_*``
    environment variables.
    """

    _block_type_name = "location-store-credentials"
    _block_type_slug = "location-store-credentials"
    _description = "Connection details for the ISP location record store."

    base_url: str = Field(
        default_factory=lambda: env_default(BASE_URL_ENV, DEFAULT_BASE_URL),
        description="Record store API base URL",
    )
    api_token: SecretStr | None = Field(
        default_factory=lambda: _env_token(),
        description="Bearer token, if the store requires one",
    )
    timeout: float = Field(
        default_factory=lambda: float(env_default(TIMEOUT_ENV, str(DEFAULT_TIMEOUT_SECONDS))),
        description="Per-request timeout in seconds",
    )
    cascade_mode: CascadeMode = Field(
        default_factory=lambda: CascadeMode(env_default(CASCADE_MODE_ENV, DEFAULT_CASCADE_MODE)),
        description="client: bottom-up per-node deletes; server: one cascade=true request",
    )

    def get_client(self) -> LocationStoreClient:
        """Return a ``LocationStoreClient`` for this store."""
        token = self.api_token.get_secret_value() if self.api_token else None
        return LocationStoreClient(self.base_url, token, self.timeout)


def get_location_store_credentials(name: str = "location-store") -> LocationStoreCredentials:
    """Load a credentials block, falling back to environment defaults.

    Args:
        name: Block name to load (default ``"location-store"``).

    Returns:
        LocationStoreCredentials instance.
    """
    try:
        return LocationStoreCredentials.load(name)  # type: ignore[return-value]
    except Exception:
        logger.info("No saved '%s' block, using environment defaults", name)
        return LocationStoreCredentials()
