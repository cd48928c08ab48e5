"""Remote collaborators of the bulk stock update.

`InventoryBackend` is the contract the executor relies on. `SupabaseBackend`
talks to the PIPR Supabase project over its PostgREST HTTP API; stock
arithmetic and movement logging happen server-side in `update_article_stock`.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import requests
from pydantic import ValidationError

from . import settings
from .exceptions import BackendError, FacilityResolutionError
from .schemas import InventoryItem, MovementType, StockMutationOutcome

logger = logging.getLogger(__name__)


class InventoryBackend(ABC):
    @abstractmethod
    def resolve_caller_facility(self) -> int:
        """Returns the CEDI id of the signed-in caller or raises FacilityResolutionError."""

    @abstractmethod
    def find_inventory_item(self, sku: str, facility_id: int) -> Optional[InventoryItem]:
        """Looks up an article of the CEDI's local catalog; None when it does not exist."""

    @abstractmethod
    def apply_stock_mutation(
        self,
        item_id: int,
        quantity: float,
        movement_type: MovementType,
        reference_type: str,
        reference_id: str,
    ) -> StockMutationOutcome:
        """Applies one movement atomically and reports the stock the backend persisted."""


class SupabaseBackend(InventoryBackend):
    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.url = (url if url is not None else settings.SUPABASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.SUPABASE_ANON_KEY
        self.access_token = (
            access_token if access_token is not None else settings.SUPABASE_ACCESS_TOKEN
        )
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT
        self.session = session or requests.Session()

        if not self.url:
            raise BackendError("SUPABASE_URL is not configured")

    def _headers(self) -> dict[str, str]:
        # PostgREST evaluates row-level security with the user's JWT, not the anon key.
        bearer = self.access_token or self.api_key
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {bearer}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.url}{path}"
        try:
            response = self.session.request(
                method, url, headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except requests.exceptions.RequestException as e:
            raise BackendError(f"Request to {path} failed: {e}") from e

        if not response.ok:
            raise BackendError(
                _error_message(response), status_code=response.status_code
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"Invalid JSON returned by {path}") from e

    def _rpc(self, function: str, params: dict[str, Any]) -> Any:
        return self._request("POST", f"/rest/v1/rpc/{function}", json=params)

    def resolve_caller_facility(self) -> int:
        if not self.access_token:
            raise FacilityResolutionError("User not authenticated")

        try:
            user = self._request("GET", "/auth/v1/user")
        except BackendError as e:
            raise FacilityResolutionError(f"User not authenticated: {e}") from e
        user_id = (user or {}).get("id")
        if not user_id:
            raise FacilityResolutionError("User not authenticated")

        try:
            cedi_id = self._rpc("get_user_cedi_id", {"p_user_id": user_id})
        except BackendError as e:
            raise FacilityResolutionError(f"Could not get the user's CEDI: {e}") from e
        if cedi_id is None:
            raise FacilityResolutionError("Could not get the user's CEDI")

        try:
            cedi_id = int(cedi_id)
        except (TypeError, ValueError):
            raise FacilityResolutionError(
                f"Unexpected CEDI id for the user: {cedi_id!r}"
            ) from None

        logger.info(f"  > Caller {user_id} belongs to CEDI {cedi_id}")
        return cedi_id

    def find_inventory_item(self, sku: str, facility_id: int) -> Optional[InventoryItem]:
        rows = self._request(
            "GET",
            "/rest/v1/articles",
            params={
                "select": "id,sku,cedi_id,current_stock",
                "sku": f"eq.{sku}",
                "cedi_id": f"eq.{facility_id}",
                "limit": "1",
            },
        )
        if not rows:
            return None
        try:
            return InventoryItem(**rows[0])
        except ValidationError as e:
            raise BackendError(f"Unexpected article payload for {sku}: {e}") from e

    def apply_stock_mutation(
        self,
        item_id: int,
        quantity: float,
        movement_type: MovementType,
        reference_type: str,
        reference_id: str,
    ) -> StockMutationOutcome:
        payload = self._rpc(
            "update_article_stock",
            {
                "p_article_id": item_id,
                "p_quantity": quantity,
                "p_movement_type": MovementType(movement_type).value,
                "p_reference_type": reference_type,
                "p_reference_id": reference_id,
            },
        )
        if not isinstance(payload, dict):
            raise BackendError("update_article_stock returned no result")
        try:
            return StockMutationOutcome(**payload)
        except ValidationError as e:
            raise BackendError(f"Unexpected update_article_stock reply: {e}") from e


def _error_message(response: requests.Response) -> str:
    """Prefers the PostgREST/GoTrue error text over the bare HTTP status."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "msg", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {response.status_code}"
