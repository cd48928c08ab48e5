"""Shared fixtures: an in-memory backend standing in for the Supabase project."""

from typing import Optional

import pytest

from pipr.backend import InventoryBackend
from pipr.exceptions import FacilityResolutionError
from pipr.schemas import InventoryItem, MovementType, StockMutationOutcome


class FakeBackend(InventoryBackend):
    """Keeps articles in a dict and applies movements the way update_article_stock does."""

    def __init__(self, stock: Optional[dict[str, float]] = None, facility_id: int = 7):
        self.facility_id = facility_id
        self.items = {
            sku: InventoryItem(id=i, sku=sku, cedi_id=facility_id, current_stock=qty)
            for i, (sku, qty) in enumerate((stock or {}).items(), start=1)
        }
        self.resolve_calls = 0
        self.lookups = []
        self.mutations = []

    def resolve_caller_facility(self) -> int:
        self.resolve_calls += 1
        if self.facility_id is None:
            raise FacilityResolutionError("Could not get the user's CEDI")
        return self.facility_id

    def find_inventory_item(self, sku, facility_id):
        self.lookups.append((sku, facility_id))
        item = self.items.get(sku)
        if item is None or item.facility_id != facility_id:
            return None
        return item

    def apply_stock_mutation(
        self, item_id, quantity, movement_type, reference_type, reference_id
    ):
        self.mutations.append(
            {
                "item_id": item_id,
                "quantity": quantity,
                "movement_type": movement_type,
                "reference_type": reference_type,
                "reference_id": reference_id,
            }
        )
        item = next(i for i in self.items.values() if i.id == item_id)
        if movement_type is MovementType.ADJUSTMENT:
            new_stock = quantity
        elif movement_type is MovementType.IN:
            new_stock = item.current_stock + quantity
        else:
            new_stock = item.current_stock - quantity
        self.items[item.sku] = item.model_copy(update={"current_stock": new_stock})
        return StockMutationOutcome(success=True, new_stock=new_stock, message="ok")


@pytest.fixture
def fake_backend():
    return FakeBackend(stock={"ART001": 40, "ART002": 10})


@pytest.fixture
def write_csv(tmp_path):
    def _write(content: str, name: str = "stock.csv"):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write
