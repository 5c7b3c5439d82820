from unittest import mock

import pytest

from nerdover.categories import Category, CategoryNotFoundError, CategoryService
from nerdover.lessons import (
    COLLECTION,
    ContentFetchError,
    CreateLessonDto,
    Lesson,
    LessonAlreadyExistsError,
    LessonNotFoundError,
    LessonService,
    UpdateContentDto,
    UpdateLessonDto,
    fetch_content,
)
from nerdover.stores import BlobStore, DocumentStore

URL_PREFIX = "https://storage.googleapis.com/bucket/"


@pytest.fixture
def env():
    store = DocumentStore()
    blobs = BlobStore("bucket")
    categories = CategoryService(store)
    categories.create(Category(name="Go", slug="go"))
    fetched = []

    def fetch(url):
        fetched.append(url)
        return blobs.read(url.removeprefix(URL_PREFIX)).decode("utf-8")

    service = LessonService(store, blobs, categories, fetch)
    return service, store, blobs, fetched


def _dto(**overrides):
    values = dict(title="Intro", slug="intro", category_slug="go", category_name="Go")
    values.update(overrides)
    return CreateLessonDto(**values)


def test_create_uploads_public_markdown(env):
    service, store, blobs, _ = env
    lesson = service.create(_dto())
    assert lesson.content_path == URL_PREFIX + "content/go.intro.md"
    assert blobs.read("content/go.intro.md") == b"# Intro"
    assert blobs.is_public("content/go.intro.md")
    assert store.get(COLLECTION, "intro") == lesson.to_dict()
    assert lesson.content is None


def test_create_requires_existing_category(env):
    service, store, blobs, _ = env
    with pytest.raises(CategoryNotFoundError):
        service.create(_dto(category_slug="rust"))
    assert blobs.list() == []


def test_create_rejects_duplicate(env):
    service, _, _, _ = env
    service.create(_dto())
    with pytest.raises(LessonAlreadyExistsError, match="lesson with this ID already exists"):
        service.create(_dto(title="Other"))


def test_get_fetches_content(env):
    service, _, _, fetched = env
    created = service.create(_dto(cover="cover.png"))
    lesson = service.get("intro")
    assert lesson.content == "# Intro"
    assert lesson.cover == "cover.png"
    assert fetched == [created.content_path]


def test_get_missing_raises(env):
    service, _, _, _ = env
    with pytest.raises(LessonNotFoundError, match="lesson not found"):
        service.get("nope")


def test_list_all(env):
    service, _, _, _ = env
    service.create(_dto(slug="b-lesson", title="B"))
    service.create(_dto(slug="a-lesson", title="A"))
    assert [lesson.slug for lesson in service.list_all()] == ["a-lesson", "b-lesson"]


def test_list_all_empty(env):
    service, _, _, _ = env
    assert service.list_all() == []


def test_update_applies_only_given_fields(env):
    service, store, _, _ = env
    service.create(_dto(cover="old.png"))
    updated = service.update("intro", UpdateLessonDto(title="New title"))
    assert updated.title == "New title"
    assert updated.cover == "old.png"
    assert store.get(COLLECTION, "intro")["title"] == "New title"
    updated = service.update("intro", UpdateLessonDto(cover="new.png"))
    assert updated.title == "New title"
    assert updated.cover == "new.png"


def test_update_missing_raises(env):
    service, _, _, _ = env
    with pytest.raises(LessonNotFoundError):
        service.update("nope", UpdateLessonDto(title="x"))


def test_update_content_replaces_file(env):
    service, _, blobs, _ = env
    service.create(_dto())
    result = service.update_content("intro", UpdateContentDto(content="## Body"))
    assert result.slug == "intro"
    assert blobs.read("content/go.intro.md") == b"## Body"
    assert blobs.is_public("content/go.intro.md")
    assert service.get("intro").content == "## Body"


def test_update_content_missing_raises(env):
    service, _, _, _ = env
    with pytest.raises(LessonNotFoundError):
        service.update_content("nope", UpdateContentDto(content="x"))


def test_delete_returns_lesson_with_content(env):
    service, _, _, _ = env
    service.create(_dto())
    deleted = service.delete("intro")
    assert deleted.content == "# Intro"
    assert not service.exists("intro")
    with pytest.raises(LessonNotFoundError):
        service.delete("intro")


def test_lesson_dict_round_trip():
    lesson = Lesson(
        title="Intro",
        slug="intro",
        category_slug="go",
        category_name="Go",
        cover="c.png",
        content="text",
        content_path="http://x/y.md",
    )
    assert Lesson.from_dict(lesson.to_dict()) == lesson


def test_lesson_to_dict_omits_missing_cover():
    data = Lesson(title="T", slug="t", category_slug="go", category_name="Go").to_dict()
    assert "cover" not in data
    assert data["content"] is None
    assert data["contentPath"] == ""


def test_lesson_from_dict_requires_fields():
    with pytest.raises(ValueError, match="categoryName"):
        Lesson.from_dict({"title": "T", "slug": "t", "categorySlug": "go"})


def test_create_dto_from_dict():
    dto = CreateLessonDto.from_dict(
        {"title": "T", "slug": "t", "categorySlug": "go", "categoryName": "Go", "cover": "c"}
    )
    assert dto == CreateLessonDto(title="T", slug="t", category_slug="go", category_name="Go", cover="c")
    with pytest.raises(ValueError, match="slug"):
        CreateLessonDto.from_dict({"title": "T", "categorySlug": "go", "categoryName": "Go"})


def test_update_dto_from_dict():
    assert UpdateLessonDto.from_dict({}) == UpdateLessonDto()
    assert UpdateLessonDto.from_dict({"title": "T"}).title == "T"
    with pytest.raises(ValueError):
        UpdateLessonDto.from_dict({"cover": 5})


def test_update_content_dto_from_dict():
    assert UpdateContentDto.from_dict({"content": "body"}).content == "body"
    with pytest.raises(ValueError, match="content"):
        UpdateContentDto.from_dict({"content": ""})
    with pytest.raises(ValueError):
        UpdateContentDto.from_dict(["content"])


@mock.patch("nerdover.lessons.requests.get")
def test_fetch_content_ok(get):
    get.return_value = mock.Mock(status_code=200, content=b"# Hi")
    assert fetch_content("http://example.com/a.md") == "# Hi"
    assert get.call_args.args[0] == "http://example.com/a.md"


@mock.patch("nerdover.lessons.requests.get")
def test_fetch_content_bad_status(get):
    get.return_value = mock.Mock(status_code=404, content=b"")
    with pytest.raises(ContentFetchError, match="failed to fetch content: status 404"):
        fetch_content("http://example.com/a.md")


@mock.patch("nerdover.lessons.requests.get")
def test_fetch_content_network_error(get):
    import requests

    get.side_effect = requests.ConnectionError("down")
    with pytest.raises(ContentFetchError, match="down"):
        fetch_content("http://example.com/a.md")