"""Media uploads and the archive that exports every lesson."""

from __future__ import annotations

import io
import json
import time
import zipfile
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable

from nerdover.categories import Category, CategoryService
from nerdover.lessons import ContentFetchError, Lesson, LessonService, fetch_content
from nerdover.stores import BlobStore

MEDIA_PREFIX = "media/"
MENU_FILENAME = "menu.json"


@dataclass(frozen=True)
class MenuLesson:
    """A lesson as listed in the exported menu."""

    title: str
    slug: str

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "slug": self.slug}


@dataclass(frozen=True)
class Menu:
    """A category and the lessons filed under it; ``lessons`` is None when empty."""

    name: str
    slug: str
    lessons: tuple[MenuLesson, ...] | None = None

    def to_dict(self) -> dict[str, Any]:
        lessons = None if self.lessons is None else [item.to_dict() for item in self.lessons]
        return {"name": self.name, "slug": self.slug, "lessons": lessons}


def build_menu(categories: Iterable[Category], lessons: Iterable[Lesson]) -> list[Menu]:
    """Group lessons under their categories, keeping the order of both."""
    by_category: dict[str, list[MenuLesson]] = {}
    for lesson in lessons:
        by_category.setdefault(lesson.category_slug, []).append(
            MenuLesson(title=lesson.title, slug=lesson.slug)
        )
    return [
        Menu(
            name=category.name,
            slug=category.slug,
            lessons=tuple(by_category[category.slug]) if category.slug in by_category else None,
        )
        for category in categories
    ]


def _to_json(value: Any) -> bytes:
    return json.dumps(value, indent=2, ensure_ascii=False).encode("utf-8")


class FeatureService:
    """Image uploads, image listing and the lesson export."""

    def __init__(
        self,
        blobs: BlobStore,
        categories: CategoryService,
        lessons: LessonService,
        fetch: Callable[[str], str] = fetch_content,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.blobs = blobs
        self.categories = categories
        self.lessons = lessons
        self.fetch = fetch
        self.clock = clock

    def upload_image(self, data: bytes, name: str, content_type: str) -> str:
        """Store an image under a timestamped name, publish it and return its URL."""
        filename = f"{MEDIA_PREFIX}{int(self.clock())}_{name}"
        self.blobs.write(filename, data, content_type=content_type)
        self.blobs.make_public(filename)
        return self.blobs.public_url(filename)

    def list_images(self) -> list[str]:
        """Return the public URLs of every uploaded image."""
        return [self.blobs.public_url(name) for name in self.blobs.list(MEDIA_PREFIX)]

    def export_lessons(self) -> bytes:
        """Build a ZIP archive holding the menu and every lesson with its content.

        Lessons without a content path, or whose content cannot be fetched,
        are left out of the archive but still appear in the menu.
        """
        categories = self.categories.list_all()
        lessons = self.lessons.list_all()
        menu = build_menu(categories, lessons)

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            archive.writestr(MENU_FILENAME, _to_json([item.to_dict() for item in menu] or None))
            for lesson in lessons:
                if not lesson.content_path:
                    continue
                try:
                    content = self.fetch(lesson.content_path)
                except ContentFetchError:
                    continue
                archive.writestr(
                    f"{lesson.category_slug}.{lesson.slug}.json",
                    _to_json(replace(lesson, content=content).to_dict()),
                )
        return buffer.getvalue()