from __future__ import annotations

from typing import Any

from reportstudio.config import CATEGORIES
from reportstudio.exceptions import ConflictError, ValidationError
from reportstudio.models import CatalogItemRequest
from reportstudio.reference import SIMPLIFIED_CODES
from reportstudio.services.base import ServiceBase, new_id, require, utc_now


class CatalogService(ServiceBase):
    """Section catalog: the templates reporting periods create sections from."""

    def list_items(self, include_deprecated: bool = False) -> list[dict[str, Any]]:
        items = self.repo.list("catalog_item")
        if not include_deprecated:
            items = [i for i in items if not i.get("isDeprecated")]
        return items

    def get_item(self, item_id: str) -> dict[str, Any]:
        return self._get_or_404("catalog_item", item_id, "Section catalog item not found.")

    def find_by_code(self, code: str | None, *, include_deprecated: bool = False) -> dict[str, Any] | None:
        if not code:
            return None
        for item in self.list_items(include_deprecated=include_deprecated):
            if item["code"].lower() == code.lower():
                return item
        return None

    def items_for_mode(self, reporting_mode: str) -> list[dict[str, Any]]:
        """Active catalog items a period in ``reporting_mode`` is built from, in catalog order."""
        items = self.list_items()
        if reporting_mode == "extended":
            return items
        return [i for i in items if i["code"] in SIMPLIFIED_CODES]

    def _validate(self, req: CatalogItemRequest, *, exclude_id: str | None = None) -> str:
        require(req.title, "title", "Title is required.")
        require(req.code, "code", "Code is required.")
        category = (req.category or "").strip().lower()
        if category not in CATEGORIES:
            raise ValidationError("Category must be one of: environmental, social, governance.", field="category")
        code = req.code.strip()
        for item in self.repo.list("catalog_item"):
            if item["id"] != exclude_id and item["code"].lower() == code.lower():
                raise ValidationError(f"A section with code '{code}' already exists.", field="code")
        return category

    def create_item(self, req: CatalogItemRequest) -> dict[str, Any]:
        with self.lock:
            category = self._validate(req)
            item = {
                "id": new_id(),
                "title": req.title.strip(),
                "code": req.code.strip(),
                "category": category,
                "description": req.description,
                "isDeprecated": False,
                "deprecatedAt": None,
                "createdAt": utc_now(),
            }
            self.repo.upsert("catalog_item", item)
        return item

    def update_item(self, item_id: str, req: CatalogItemRequest) -> dict[str, Any]:
        with self.lock:
            item = self.get_item(item_id)
            category = self._validate(req, exclude_id=item_id)
            item.update(
                {
                    "title": req.title.strip(),
                    "code": req.code.strip(),
                    "category": category,
                    "description": req.description,
                }
            )
            self.repo.upsert("catalog_item", item)
        return item

    def deprecate_item(self, item_id: str) -> dict[str, Any]:
        with self.lock:
            item = self.get_item(item_id)
            if item.get("isDeprecated"):
                raise ConflictError("Section is already deprecated.")
            item["isDeprecated"] = True
            item["deprecatedAt"] = utc_now()
            self.repo.upsert("catalog_item", item)
        return item

    def seed(self, catalog: list[dict[str, str]]) -> int:
        if self.repo.count("catalog_item"):
            return 0
        now = utc_now()
        self.repo.upsert_many(
            ("catalog_item", {**entry, "id": new_id(), "isDeprecated": False, "deprecatedAt": None, "createdAt": now})
            for entry in catalog
        )
        return len(catalog)
