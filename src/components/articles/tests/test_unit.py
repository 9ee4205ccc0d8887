"""
Articles component unit tests.

Tests for article CRUD, versioning on edit, listing and the status workflow.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

import pytest

from src.components.articles import ArticleStore
from src.components.images import ImageLinkage
from src.components.versions import VersionLedger
from src.core.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from src.core.ports.db import ArticleFilter
from src.core.ports.storage import KeyNotFoundError, StorageError, StoredObject
from src.domain.entities import Article, ArticleImage, ArticleStatus, ArticleVersion

# --- Mock Implementations ---


class MockClock:
    """Clock that advances one second per call, so updated_at always moves."""

    def __init__(self) -> None:
        self._now = datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC)

    def now_utc(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now


class MockVersionRepo:
    def __init__(self) -> None:
        self.versions: list[ArticleVersion] = []
        self.articles: MockArticleRepo | None = None
        self.fail_next = False

    def insert_next(
        self, article_id: UUID, title: str, content: str | None, created_at: datetime
    ) -> ArticleVersion:
        if self.fail_next:
            self.fail_next = False
            raise RuntimeError("version store down")
        if self.articles is not None and article_id not in self.articles.rows:
            raise LookupError(article_id)
        nums = [v.version_num for v in self.versions if v.article_id == article_id]
        version = ArticleVersion(
            article_id=article_id,
            title=title,
            content=content,
            version_num=max(nums, default=0) + 1,
            created_at=created_at,
        )
        self.versions.append(version)
        return version

    def update_and_insert_next(
        self, article_id: UUID, fields: dict[str, Any], updated_at: datetime
    ) -> tuple[Article, ArticleVersion] | None:
        assert self.articles is not None
        article = self.articles.rows.get(article_id)
        if article is None:
            return None
        if self.fail_next:
            # Nothing is written: the edit and its version share one transaction
            self.fail_next = False
            raise RuntimeError("version store down")
        article = article.model_copy(update={**fields, "updated_at": updated_at})
        version = self.insert_next(article_id, article.title, article.content, updated_at)
        self.articles.rows[article_id] = article
        return article, version

    def list_by_article(self, article_id: UUID) -> list[ArticleVersion]:
        return sorted(
            (v for v in self.versions if v.article_id == article_id),
            key=lambda v: v.version_num,
            reverse=True,
        )


class MockImageRepo:
    def __init__(self) -> None:
        self.images: dict[UUID, ArticleImage] = {}

    def get_by_id(self, image_id: UUID) -> ArticleImage | None:
        return self.images.get(image_id)

    def insert(self, image: ArticleImage) -> ArticleImage:
        self.images[image.id] = image
        return image

    def set_html(
        self, image_id: UUID, html_url: str | None, html_storage_path: str | None
    ) -> ArticleImage | None:
        image = self.images.get(image_id)
        if image is None:
            return None
        image = image.model_copy(
            update={"html_url": html_url, "html_storage_path": html_storage_path}
        )
        self.images[image_id] = image
        return image

    def delete(self, image_id: UUID) -> None:
        self.images.pop(image_id, None)

    def list_by_article(self, article_id: UUID) -> list[ArticleImage]:
        items = [i for i in self.images.values() if i.article_id == article_id]
        return sorted(items, key=lambda i: (i.sort_order, i.created_at))


class MockArticleRepo:
    """In-memory article repository; delete_cascade also clears children."""

    def __init__(self, versions: MockVersionRepo, images: MockImageRepo) -> None:
        self.rows: dict[UUID, Article] = {}
        self._versions = versions
        self._images = images
        self.cas_failures_left = 0
        self.on_cas_failure: ArticleStatus | None = None
        self.cas_calls = 0

    def get_by_id(self, article_id: UUID) -> Article | None:
        return self.rows.get(article_id)

    def insert(self, article: Article) -> Article:
        self.rows[article.id] = article
        return article

    def update_fields(
        self, article_id: UUID, fields: dict[str, Any], updated_at: datetime
    ) -> Article | None:
        article = self.rows.get(article_id)
        if article is None:
            return None
        article = article.model_copy(update={**fields, "updated_at": updated_at})
        self.rows[article_id] = article
        return article

    def compare_and_set_status(
        self,
        article_id: UUID,
        expected: ArticleStatus,
        new: ArticleStatus,
        updated_at: datetime,
    ) -> bool:
        self.cas_calls += 1
        article = self.rows.get(article_id)
        if self.cas_failures_left > 0:
            # Simulate a concurrent writer winning the race
            self.cas_failures_left -= 1
            if self.on_cas_failure and article is not None:
                self.rows[article_id] = article.model_copy(
                    update={"status": self.on_cas_failure}
                )
            return False
        if article is None or article.status != expected:
            return False
        self.rows[article_id] = article.model_copy(
            update={"status": new, "updated_at": updated_at}
        )
        return True

    def mark_published(
        self, article_id: UUID, xhs_note_id: str, updated_at: datetime
    ) -> Article | None:
        raise NotImplementedError

    def delete_cascade(self, article_id: UUID) -> bool:
        if article_id not in self.rows:
            return False
        del self.rows[article_id]
        self._versions.versions = [
            v for v in self._versions.versions if v.article_id != article_id
        ]
        for image in self._images.list_by_article(article_id):
            self._images.delete(image.id)
        return True

    def list(self, filters: ArticleFilter) -> tuple[list[Article], int]:
        items = list(self.rows.values())
        if filters.status:
            items = [a for a in items if a.status == filters.status]
        if filters.tag:
            items = [a for a in items if filters.tag in a.tags]
        if filters.category:
            items = [a for a in items if a.category == filters.category]
        if filters.search:
            needle = filters.search.casefold()
            items = [
                a
                for a in items
                if needle in a.title.casefold() or needle in (a.content or "").casefold()
            ]
        items.sort(key=lambda a: a.updated_at, reverse=True)
        return items[filters.offset : filters.offset + filters.limit], len(items)


class MockBlobStore:
    """Blob store that records every delete call."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_deletes = False

    def ensure_container(self) -> None:
        pass

    def put(self, key: str, data: bytes, content_type: str, *, overwrite: bool = False) -> Any:
        self.objects[key] = data
        return StoredObject(key, len(data), content_type, "sha", '"etag"')

    def get(self, key: str) -> tuple[bytes, StoredObject]:
        if key not in self.objects:
            raise KeyNotFoundError(key)
        data = self.objects[key]
        return data, StoredObject(key, len(data), "text/html", "sha", '"etag"')

    def exists(self, key: str) -> bool:
        return key in self.objects

    def delete(self, key: str) -> bool:
        self.deleted.append(key)
        if self.fail_deletes:
            raise StorageError("blob store unreachable")
        return self.objects.pop(key, None) is not None


# --- Fixtures ---


@pytest.fixture
def version_repo() -> MockVersionRepo:
    return MockVersionRepo()


@pytest.fixture
def image_repo() -> MockImageRepo:
    return MockImageRepo()


@pytest.fixture
def repo(version_repo: MockVersionRepo, image_repo: MockImageRepo) -> MockArticleRepo:
    r = MockArticleRepo(version_repo, image_repo)
    version_repo.articles = r
    return r


@pytest.fixture
def blobs() -> MockBlobStore:
    return MockBlobStore()


@pytest.fixture
def clock() -> MockClock:
    return MockClock()


@pytest.fixture
def images(
    image_repo: MockImageRepo, repo: MockArticleRepo, blobs: MockBlobStore, clock: MockClock
) -> ImageLinkage:
    return ImageLinkage(image_repo, repo, blobs, clock)


@pytest.fixture
def store(
    repo: MockArticleRepo,
    version_repo: MockVersionRepo,
    images: ImageLinkage,
    clock: MockClock,
) -> ArticleStore:
    ledger = VersionLedger(version_repo, clock)
    return ArticleStore(repo, ledger, clock, images=images, default_limit=50, max_limit=200)


# --- Create ---


class TestCreate:
    def test_creates_draft_with_version_one(
        self, store: ArticleStore, version_repo: MockVersionRepo
    ) -> None:
        article = store.create("Hello", "Body", tags=["a"], category="news")

        assert article.status == "draft"
        assert article.tags == ["a"]
        assert article.category == "news"
        assert article.xhs_note_id is None
        versions = version_repo.list_by_article(article.id)
        assert len(versions) == 1
        assert versions[0].version_num == 1
        assert (versions[0].title, versions[0].content) == ("Hello", "Body")

    @pytest.mark.parametrize("title", ["", "   ", None])
    def test_blank_title_rejected(self, store: ArticleStore, repo: MockArticleRepo, title) -> None:
        with pytest.raises(ValidationError) as exc:
            store.create(title)
        assert exc.value.field == "title"
        assert repo.rows == {}

    def test_bad_tags_rejected(self, store: ArticleStore) -> None:
        with pytest.raises(ValidationError):
            store.create("T", tags=["ok", 3])  # type: ignore[list-item]

    def test_version_failure_removes_article(
        self, store: ArticleStore, repo: MockArticleRepo, version_repo: MockVersionRepo
    ) -> None:
        version_repo.fail_next = True

        with pytest.raises(RuntimeError):
            store.create("Doomed")

        assert repo.rows == {}


# --- Get / Update ---


class TestUpdate:
    def test_get_missing(self, store: ArticleStore) -> None:
        with pytest.raises(NotFoundError):
            store.get(uuid4())

    def test_content_update_appends_version(
        self, store: ArticleStore, version_repo: MockVersionRepo
    ) -> None:
        article = store.create("Title", "v1")

        updated = store.update(article.id, {"content": "v2"})

        assert updated.content == "v2"
        assert updated.title == "Title"
        latest = version_repo.list_by_article(article.id)[0]
        assert (latest.version_num, latest.title, latest.content) == (2, "Title", "v2")

    def test_unchanged_title_still_appends_version(
        self, store: ArticleStore, version_repo: MockVersionRepo
    ) -> None:
        article = store.create("Same", "Body")

        store.update(article.id, {"title": "Same"})

        assert len(version_repo.list_by_article(article.id)) == 2

    def test_tags_only_does_not_version(
        self, store: ArticleStore, version_repo: MockVersionRepo
    ) -> None:
        article = store.create("T", "B")

        updated = store.update(article.id, {"tags": ["x", "y"], "category": "c"})

        assert updated.tags == ["x", "y"]
        assert updated.category == "c"
        assert len(version_repo.list_by_article(article.id)) == 1

    def test_status_key_is_ignored(self, store: ArticleStore) -> None:
        article = store.create("T")

        updated = store.update(article.id, {"status": "published", "title": "T2"})

        assert updated.status == "draft"
        assert updated.title == "T2"

    def test_empty_update_returns_current(self, store: ArticleStore) -> None:
        article = store.create("T")

        assert store.update(article.id, {}) == article

    def test_blank_title_rejected(self, store: ArticleStore) -> None:
        article = store.create("T")

        with pytest.raises(ValidationError):
            store.update(article.id, {"title": "  "})

    def test_update_missing(self, store: ArticleStore) -> None:
        with pytest.raises(NotFoundError):
            store.update(uuid4(), {"title": "x"})

    def test_updated_at_moves(self, store: ArticleStore) -> None:
        article = store.create("T")

        updated = store.update(article.id, {"category": "c"})

        assert updated.updated_at > article.updated_at

    def test_snapshot_includes_edit_made_after_read(
        self,
        store: ArticleStore,
        repo: MockArticleRepo,
        version_repo: MockVersionRepo,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        article = store.create("T", "C")
        read_article = repo.get_by_id
        interleaved: list[bool] = []

        def read_then_concurrent_edit(article_id: UUID) -> Article | None:
            current = read_article(article_id)
            if not interleaved:
                interleaved.append(True)
                store.update(article_id, {"content": "Y"})
            return current

        monkeypatch.setattr(repo, "get_by_id", read_then_concurrent_edit)

        updated = store.update(article.id, {"title": "X"})

        assert (updated.title, updated.content) == ("X", "Y")
        latest = version_repo.list_by_article(article.id)[0]
        assert (latest.version_num, latest.title, latest.content) == (3, "X", "Y")

    def test_version_failure_leaves_edit_unwritten(
        self, store: ArticleStore, repo: MockArticleRepo, version_repo: MockVersionRepo
    ) -> None:
        article = store.create("T", "C")
        version_repo.fail_next = True

        with pytest.raises(RuntimeError):
            store.update(article.id, {"content": "lost"})

        assert repo.rows[article.id].content == "C"
        assert len(version_repo.list_by_article(article.id)) == 1


# --- Delete ---


class TestDelete:
    def test_cascade_removes_children_and_blobs(
        self,
        store: ArticleStore,
        images: ImageLinkage,
        blobs: MockBlobStore,
        version_repo: MockVersionRepo,
        image_repo: MockImageRepo,
    ) -> None:
        article = store.create("T", "B")
        store.update(article.id, {"content": "B2"})
        first = images.add_image(article.id, b"png-1", filename="a.png", content_type="image/png")
        images.add_image(article.id, b"png-2", filename="b.png", content_type="image/png")
        images.attach_html(first.id, "<p>hi</p>")

        store.delete(article.id)

        # two image blobs plus one HTML blob
        assert len(blobs.deleted) == 3
        assert blobs.objects == {}
        assert version_repo.list_by_article(article.id) == []
        assert image_repo.list_by_article(article.id) == []
        with pytest.raises(NotFoundError):
            store.get(article.id)

    def test_blob_failures_do_not_block_delete(
        self, store: ArticleStore, images: ImageLinkage, blobs: MockBlobStore
    ) -> None:
        article = store.create("T")
        images.add_image(article.id, b"data", content_type="image/jpeg")
        blobs.fail_deletes = True

        store.delete(article.id)

        assert len(blobs.deleted) == 1
        with pytest.raises(NotFoundError):
            store.get(article.id)

    def test_delete_missing(self, store: ArticleStore) -> None:
        with pytest.raises(NotFoundError):
            store.delete(uuid4())


# --- List ---


class TestList:
    @pytest.fixture
    def seeded(self, store: ArticleStore) -> list[Article]:
        return [
            store.create("Python tips", "Use pathlib", tags=["py"], category="tech"),
            store.create("Cooking", "Rice with PYTHON sauce", tags=["food"]),
            store.create("Travel", "Kyoto", tags=["py", "jp"], category="tech"),
        ]

    def test_newest_first_with_total(self, store: ArticleStore, seeded: list[Article]) -> None:
        page = store.list()

        assert page.total == 3
        assert [a.title for a in page.articles] == ["Travel", "Cooking", "Python tips"]
        assert (page.limit, page.offset) == (50, 0)

    def test_search_is_case_insensitive_over_title_or_content(
        self, store: ArticleStore, seeded: list[Article]
    ) -> None:
        page = store.list(ArticleFilter(search="python"))

        assert {a.title for a in page.articles} == {"Python tips", "Cooking"}

    def test_tag_and_category(self, store: ArticleStore, seeded: list[Article]) -> None:
        assert store.list(ArticleFilter(tag="py")).total == 2
        assert store.list(ArticleFilter(tag="py", category="tech", search="kyoto")).total == 1

    def test_pagination_total_ignores_limit(
        self, store: ArticleStore, seeded: list[Article]
    ) -> None:
        page = store.list(ArticleFilter(limit=1, offset=1))

        assert page.total == 3
        assert [a.title for a in page.articles] == ["Cooking"]

    def test_limit_is_clamped(self, store: ArticleStore, seeded: list[Article]) -> None:
        assert store.list(ArticleFilter(limit=10_000)).limit == 200
        assert store.list(ArticleFilter(limit=0)).limit == 50

    def test_unknown_status_rejected(self, store: ArticleStore) -> None:
        with pytest.raises(ValidationError):
            store.list(ArticleFilter(status="bogus"))  # type: ignore[arg-type]

    def test_negative_offset_rejected(self, store: ArticleStore) -> None:
        with pytest.raises(ValidationError):
            store.list(ArticleFilter(offset=-1))


# --- Status ---


class TestStatus:
    def test_options_for_new_article(self, store: ArticleStore) -> None:
        article = store.create("T")

        options = store.status_options(article.id)

        assert options.current_status == "draft"
        assert options.allowed_next_statuses == ["pending_render", "archived"]

    def test_transition_walk(self, store: ArticleStore) -> None:
        article = store.create("T")

        first = store.transition(article.id, "pending_render")
        second = store.transition(article.id, "pending_review")

        assert (first.previous_status, first.new_status) == ("draft", "pending_render")
        assert (second.previous_status, second.new_status) == ("pending_render", "pending_review")
        assert store.get(article.id).status == "pending_review"

    def test_invalid_transition_carries_allowed(self, store: ArticleStore) -> None:
        article = store.create("T")

        with pytest.raises(InvalidTransitionError) as exc:
            store.transition(article.id, "published")

        assert exc.value.allowed == ["pending_render", "archived"]
        assert store.get(article.id).status == "draft"

    def test_transition_missing(self, store: ArticleStore) -> None:
        with pytest.raises(NotFoundError):
            store.transition(uuid4(), "archived")

    def test_lost_race_is_retried(self, store: ArticleStore, repo: MockArticleRepo) -> None:
        article = store.create("T")
        repo.cas_failures_left = 1

        change = store.transition(article.id, "archived")

        assert change.new_status == "archived"
        assert repo.cas_calls == 2

    def test_retry_revalidates_against_new_status(
        self, store: ArticleStore, repo: MockArticleRepo
    ) -> None:
        article = store.create("T")
        repo.cas_failures_left = 1
        repo.on_cas_failure = "archived"

        # archived -> pending_render is not in the table
        with pytest.raises(InvalidTransitionError):
            store.transition(article.id, "pending_render")

    def test_persistent_race_gives_conflict(
        self, store: ArticleStore, repo: MockArticleRepo
    ) -> None:
        article = store.create("T")
        repo.cas_failures_left = 100

        with pytest.raises(ConflictError):
            store.transition(article.id, "archived")
        assert repo.cas_calls == 3
