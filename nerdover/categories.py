"""Categories and the service that keeps them in the document store."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any

from nerdover.stores import DocumentStore

COLLECTION = "category"


@dataclass(frozen=True)
class Category:
    """A category of lessons, identified by its slug."""

    name: str
    slug: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Category:
        """Build a category, requiring non-empty ``name`` and ``slug`` strings."""
        if not isinstance(data, dict):
            raise ValueError("category must be an object")
        values = {}
        for key in ("name", "slug"):
            value = data.get(key)
            if not isinstance(value, str) or not value:
                raise ValueError(f"missing required field: {key}")
            values[key] = value
        return cls(**values)

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "slug": self.slug}


class CategoryNotFoundError(LookupError):
    def __init__(self, message: str = "category not found") -> None:
        super().__init__(message)


class CategoryAlreadyExistsError(ValueError):
    def __init__(self, message: str = "category with this ID already exists") -> None:
        super().__init__(message)


class CategoryService:
    """Create, read, update and delete categories."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def exists(self, category_id: str) -> bool:
        return self.store.get(COLLECTION, category_id) is not None

    def create(self, category: Category) -> Category:
        if self.exists(category.slug):
            raise CategoryAlreadyExistsError()
        self.store.set(COLLECTION, category.slug, category.to_dict())
        return category

    def list_all(self) -> list[Category]:
        return [_from_stored(doc) for doc in self.store.documents(COLLECTION)]

    def get(self, category_id: str) -> Category:
        doc = self.store.get(COLLECTION, category_id)
        if doc is None:
            raise CategoryNotFoundError()
        return _from_stored(doc)

    def update(self, category_id: str, category: Category) -> Category:
        """Replace a category; its slug is always the id it is stored under."""
        if not self.exists(category_id):
            raise CategoryNotFoundError()
        updated = dataclasses.replace(category, slug=category_id)
        self.store.set(COLLECTION, category_id, updated.to_dict())
        return updated

    def delete(self, category_id: str) -> Category:
        category = self.get(category_id)
        self.store.delete(COLLECTION, category_id)
        return category


def _from_stored(doc: dict[str, Any]) -> Category:
    return Category(name=doc.get("name", ""), slug=doc.get("slug", ""))