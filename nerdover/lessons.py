"""Lessons, their request bodies and the service that manages them."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable

import requests

from nerdover.categories import CategoryNotFoundError, CategoryService
from nerdover.stores import BlobStore, DocumentStore

COLLECTION = "lesson"
CONTENT_TYPE = "text/markdown; charset=utf-8"
CACHE_CONTROL = "public, max-age=3600"
FETCH_TIMEOUT = 30.0


def _required_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"missing required field: {key}")
    return value


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"field must be a string: {key}")
    return value


def _require_object(data: Any, what: str) -> None:
    if not isinstance(data, dict):
        raise ValueError(f"{what} must be an object")


@dataclass(frozen=True)
class Lesson:
    """A lesson whose Markdown content lives in the blob store."""

    title: str
    slug: str
    category_slug: str
    category_name: str
    cover: str | None = None
    content: str | None = None
    content_path: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Lesson:
        """Build a lesson from its JSON form, requiring the mandatory fields."""
        _require_object(data, "lesson")
        content_path = data.get("contentPath") or ""
        if not isinstance(content_path, str):
            raise ValueError("field must be a string: contentPath")
        return cls(
            title=_required_str(data, "title"),
            slug=_required_str(data, "slug"),
            category_slug=_required_str(data, "categorySlug"),
            category_name=_required_str(data, "categoryName"),
            cover=_optional_str(data, "cover"),
            content=_optional_str(data, "content"),
            content_path=content_path,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form; ``cover`` is left out when unset."""
        result: dict[str, Any] = {"title": self.title, "slug": self.slug}
        if self.cover is not None:
            result["cover"] = self.cover
        result["content"] = self.content
        result["contentPath"] = self.content_path
        result["categorySlug"] = self.category_slug
        result["categoryName"] = self.category_name
        return result


@dataclass(frozen=True)
class CreateLessonDto:
    title: str
    slug: str
    category_slug: str
    category_name: str
    cover: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CreateLessonDto:
        _require_object(data, "request body")
        return cls(
            title=_required_str(data, "title"),
            slug=_required_str(data, "slug"),
            category_slug=_required_str(data, "categorySlug"),
            category_name=_required_str(data, "categoryName"),
            cover=_optional_str(data, "cover"),
        )


@dataclass(frozen=True)
class UpdateLessonDto:
    title: str | None = None
    cover: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UpdateLessonDto:
        _require_object(data, "request body")
        return cls(title=_optional_str(data, "title"), cover=_optional_str(data, "cover"))


@dataclass(frozen=True)
class UpdateContentDto:
    content: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UpdateContentDto:
        _require_object(data, "request body")
        return cls(content=_required_str(data, "content"))


class LessonNotFoundError(LookupError):
    def __init__(self, message: str = "lesson not found") -> None:
        super().__init__(message)


class LessonAlreadyExistsError(ValueError):
    def __init__(self, message: str = "lesson with this ID already exists") -> None:
        super().__init__(message)


class ContentFetchError(Exception):
    """Lesson content could not be downloaded."""


def fetch_content(url: str) -> str:
    """Download the text published at ``url``."""
    try:
        response = requests.get(url, timeout=FETCH_TIMEOUT)
    except requests.RequestException as exc:
        raise ContentFetchError(str(exc)) from exc
    if response.status_code != 200:
        raise ContentFetchError(f"failed to fetch content: status {response.status_code}")
    return response.content.decode("utf-8", errors="replace")


def _content_filename(category_slug: str, slug: str) -> str:
    return f"content/{category_slug}.{slug}.md"


def _from_stored(doc: dict[str, Any]) -> Lesson:
    return Lesson(
        title=doc.get("title", ""),
        slug=doc.get("slug", ""),
        category_slug=doc.get("categorySlug", ""),
        category_name=doc.get("categoryName", ""),
        cover=doc.get("cover"),
        content=doc.get("content"),
        content_path=doc.get("contentPath") or "",
    )


class LessonService:
    """Create, read, update and delete lessons and their content files."""

    def __init__(
        self,
        store: DocumentStore,
        blobs: BlobStore,
        categories: CategoryService,
        fetch: Callable[[str], str] = fetch_content,
    ) -> None:
        self.store = store
        self.blobs = blobs
        self.categories = categories
        self.fetch = fetch

    def exists(self, lesson_id: str) -> bool:
        return self.store.get(COLLECTION, lesson_id) is not None

    def create(self, dto: CreateLessonDto) -> Lesson:
        """Create a lesson with a starter Markdown file named after its title."""
        if not self.categories.exists(dto.category_slug):
            raise CategoryNotFoundError()
        if self.exists(dto.slug):
            raise LessonAlreadyExistsError()

        filename = _content_filename(dto.category_slug, dto.slug)
        self._publish(filename, f"# {dto.title}")

        lesson = Lesson(
            title=dto.title,
            slug=dto.slug,
            category_slug=dto.category_slug,
            category_name=dto.category_name,
            cover=dto.cover,
            content_path=self.blobs.public_url(filename),
        )
        self.store.set(COLLECTION, lesson.slug, lesson.to_dict())
        return lesson

    def list_all(self) -> list[Lesson]:
        return [_from_stored(doc) for doc in self.store.documents(COLLECTION)]

    def get(self, lesson_id: str) -> Lesson:
        """Return the lesson with its content downloaded."""
        lesson = self._load(lesson_id)
        if lesson.content_path:
            lesson = replace(lesson, content=self.fetch(lesson.content_path))
        return lesson

    def update(self, lesson_id: str, dto: UpdateLessonDto) -> Lesson:
        lesson = self._load(lesson_id)
        if dto.title is not None:
            lesson = replace(lesson, title=dto.title)
        if dto.cover is not None:
            lesson = replace(lesson, cover=dto.cover)
        self.store.set(COLLECTION, lesson_id, lesson.to_dict())
        return lesson

    def update_content(self, lesson_id: str, dto: UpdateContentDto) -> Lesson:
        """Replace the lesson's Markdown file and return the stored lesson."""
        lesson = self._load(lesson_id)
        self._publish(_content_filename(lesson.category_slug, lesson.slug), dto.content)
        return lesson

    def delete(self, lesson_id: str) -> Lesson:
        lesson = self.get(lesson_id)
        self.store.delete(COLLECTION, lesson_id)
        return lesson

    def _load(self, lesson_id: str) -> Lesson:
        doc = self.store.get(COLLECTION, lesson_id)
        if doc is None:
            raise LessonNotFoundError()
        return _from_stored(doc)

    def _publish(self, filename: str, content: str) -> None:
        self.blobs.write(filename, content, content_type=CONTENT_TYPE, cache_control=CACHE_CONTROL)
        self.blobs.make_public(filename)