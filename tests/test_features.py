import io
import json
import zipfile
from dataclasses import dataclass

import pytest

from nerdover.categories import Category, CategoryService
from nerdover.features import FeatureService, Menu, MenuLesson, build_menu
from nerdover.lessons import ContentFetchError, CreateLessonDto, Lesson, LessonService
from nerdover.stores import BlobStore, DocumentStore

CLOCK = 1700000000


@dataclass
class Env:
    store: DocumentStore
    blobs: BlobStore
    categories: CategoryService
    lessons: LessonService
    service: FeatureService
    failing: set


@pytest.fixture
def env():
    store = DocumentStore()
    blobs = BlobStore("bucket")
    categories = CategoryService(store)
    prefix = blobs.public_url("")
    failing = set()

    def fetch(url):
        if url in failing:
            raise ContentFetchError("failed to fetch content: status 404")
        return blobs.read(url[len(prefix):]).decode("utf-8")

    lessons = LessonService(store, blobs, categories, fetch)
    service = FeatureService(blobs, categories, lessons, fetch, clock=lambda: CLOCK)
    return Env(store, blobs, categories, lessons, service, failing)


def _open(data):
    return zipfile.ZipFile(io.BytesIO(data))


def test_build_menu_groups_lessons_by_category():
    categories = [Category("Python", "python"), Category("Rust", "rust")]
    lessons = [
        Lesson(title="Intro", slug="intro", category_slug="python", category_name="Python"),
        Lesson(title="Loops", slug="loops", category_slug="python", category_name="Python"),
    ]
    menu = build_menu(categories, lessons)
    assert [item.slug for item in menu] == ["python", "rust"]
    assert menu[0].lessons == (MenuLesson("Intro", "intro"), MenuLesson("Loops", "loops"))
    assert menu[1].lessons is None
    assert menu[1].to_dict() == {"name": "Rust", "slug": "rust", "lessons": None}


def test_build_menu_drops_lessons_of_unknown_categories():
    lessons = [Lesson(title="Stray", slug="stray", category_slug="gone", category_name="Gone")]
    menu = build_menu([Category("Python", "python")], lessons)
    assert menu == [Menu(name="Python", slug="python", lessons=None)]


def test_menu_to_dict_lists_lessons():
    menu = Menu("Python", "python", (MenuLesson("Intro", "intro"),))
    assert menu.to_dict()["lessons"] == [{"title": "Intro", "slug": "intro"}]


def test_upload_image_stores_public_timestamped_object(env):
    url = env.service.upload_image(b"\x89PNG", "cat.png", "image/png")
    name = f"media/{CLOCK}_cat.png"
    assert url == env.blobs.public_url(name)
    assert env.blobs.read(name) == b"\x89PNG"
    assert env.blobs.is_public(name)


def test_list_images_only_lists_media(env):
    env.service.upload_image(b"a", "a.png", "image/png")
    env.service.upload_image(b"b", "b.png", "image/png")
    env.blobs.write("content/python.intro.md", "# Intro")
    images = env.service.list_images()
    assert len(images) == 2
    assert images == [env.blobs.public_url(name) for name in env.blobs.list("media/")]


def test_list_images_empty(env):
    assert env.service.list_images() == []


def test_export_empty_store_holds_only_null_menu(env):
    with _open(env.service.export_lessons()) as archive:
        assert archive.namelist() == ["menu.json"]
        assert json.loads(archive.read("menu.json")) is None


def test_export_contains_menu_and_lessons(env):
    env.categories.create(Category("Python", "python"))
    env.lessons.create(CreateLessonDto("Intro", "intro", "python", "Python"))
    env.lessons.create(CreateLessonDto("Loops", "loops", "python", "Python"))

    with _open(env.service.export_lessons()) as archive:
        assert sorted(archive.namelist()) == [
            "menu.json",
            "python.intro.json",
            "python.loops.json",
        ]
        menu = json.loads(archive.read("menu.json"))
        lesson = json.loads(archive.read("python.intro.json"))

    assert menu == [
        {
            "name": "Python",
            "slug": "python",
            "lessons": [{"title": "Intro", "slug": "intro"}, {"title": "Loops", "slug": "loops"}],
        }
    ]
    assert lesson["content"] == "# Intro"
    assert lesson["categorySlug"] == "python"
    assert Lesson.from_dict(lesson).content_path == env.blobs.public_url("content/python.intro.md")


def test_export_skips_lessons_whose_content_fails(env):
    env.categories.create(Category("Python", "python"))
    failed = env.lessons.create(CreateLessonDto("Intro", "intro", "python", "Python"))
    env.lessons.create(CreateLessonDto("Loops", "loops", "python", "Python"))
    env.failing.add(failed.content_path)

    with _open(env.service.export_lessons()) as archive:
        names = archive.namelist()
        menu = json.loads(archive.read("menu.json"))
    assert "python.intro.json" not in names
    assert "python.loops.json" in names
    assert [item["slug"] for item in menu[0]["lessons"]] == ["intro", "loops"]


def test_export_skips_lessons_without_content_path(env):
    env.categories.create(Category("Python", "python"))
    env.store.set(
        "lesson",
        "bare",
        {"title": "Bare", "slug": "bare", "categorySlug": "python", "categoryName": "Python"},
    )
    with _open(env.service.export_lessons()) as archive:
        names = archive.namelist()
        menu = json.loads(archive.read("menu.json"))
    assert names == ["menu.json"]
    assert menu[0]["lessons"] == [{"title": "Bare", "slug": "bare"}]