"""Unit tests for content/store.py and the page view-models in web/models.py.

Covers:
- save_page() inserts with a generated UUID, then updates in place
- list_pages() ordering by sort_order, then title
- slug uniqueness enforced by the store and reported by PageEditModel
- PageEditModel validation messages and publish timestamp handling
"""

import uuid

import pytest
from sqlalchemy.exc import IntegrityError

from content.models import Page
from content.store import ContentStore
from web.models import PageEditModel, PageListModel, slugify


@pytest.fixture
def store():
    s = ContentStore("sqlite:///:memory:")
    yield s
    s.close()


# ---------------------------------------------------------------------------
# ContentStore
# ---------------------------------------------------------------------------


def test_save_page_assigns_uuid(store):
    page_id = store.save_page(Page(title="Home", slug="home"))
    uuid.UUID(page_id)
    page = store.get_page(page_id)
    assert page.title == "Home"
    assert page.created
    assert page.last_modified
    assert page.is_published is False


def test_save_page_updates_existing(store):
    page = Page(title="About", slug="about")
    page_id = store.save_page(page)
    created = store.get_page(page_id).created

    page.title = "About us"
    assert store.save_page(page) == page_id
    updated = store.get_page(page_id)
    assert updated.title == "About us"
    assert updated.created == created
    assert len(store.list_pages()) == 1


def test_list_pages_site_order(store):
    store.save_page(Page(title="Zeta", slug="zeta", sort_order=0))
    store.save_page(Page(title="Alpha", slug="alpha", sort_order=1))
    store.save_page(Page(title="Beta", slug="beta", sort_order=0))
    assert [p.title for p in store.list_pages()] == ["Beta", "Zeta", "Alpha"]


def test_duplicate_slug_raises(store):
    store.save_page(Page(title="One", slug="same"))
    with pytest.raises(IntegrityError):
        store.save_page(Page(title="Two", slug="same"))


def test_get_page_missing(store):
    assert store.get_page(str(uuid.uuid4())) is None


def test_delete_page(store):
    page_id = store.save_page(Page(title="Gone", slug="gone"))
    assert store.delete_page(page_id)
    assert store.get_page(page_id) is None
    assert store.delete_page(page_id) is False


# ---------------------------------------------------------------------------
# View-models
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "text,expected",
    [("Hello, World!", "hello-world"), ("  Crème brûlée ", "creme-brulee"), ("---", "")],
)
def test_slugify(text, expected):
    assert slugify(text) == expected


def test_new_model_is_new():
    model = PageEditModel.create()
    assert model.is_new
    assert model.errors == []


def test_save_generates_slug_from_title(store):
    model = PageEditModel(title="Contact Us")
    assert model.save(store)
    assert model.slug == "contact-us"
    assert not model.is_new
    assert store.get_page_by_slug("contact-us").id == model.id


def test_save_requires_title(store):
    model = PageEditModel(title="   ")
    assert model.save(store) is False
    assert "Title is required." in model.errors
    assert store.list_pages() == []


def test_save_rejects_long_meta_description(store):
    model = PageEditModel(title="Long", meta_description="x" * 257)
    assert model.save(store) is False
    assert any("Meta description" in e for e in model.errors)


@pytest.mark.parametrize("raw,expected", [(" 7 ", 7), ("", 0), ("-2", -2), (3, 3)])
def test_save_parses_sort_order(store, raw, expected):
    model = PageEditModel(title=f"Ordered {expected}", sort_order=raw)
    assert model.save(store)
    assert store.get_page(model.id).sort_order == expected


@pytest.mark.parametrize("raw", ["abc", "1.5", "7th"])
def test_save_rejects_non_integer_sort_order(store, raw):
    model = PageEditModel(title="Ordered", sort_order=raw)
    assert model.save(store) is False
    assert "Sort order must be a whole number." in model.errors
    assert store.list_pages() == []


def test_save_rejects_title_without_slug_characters(store):
    model = PageEditModel(title="日本語")
    assert model.save(store) is False
    assert "Slug must contain at least one letter or digit." in model.errors


def test_save_reports_duplicate_slug(store):
    assert PageEditModel(title="News").save(store)
    model = PageEditModel(title="Other", slug="news")
    assert model.save(store) is False
    assert any("already used" in e for e in model.errors)


def test_save_unknown_id_reports_missing_page(store):
    model = PageEditModel(id=str(uuid.uuid4()), title="Ghost")
    assert model.save(store) is False
    assert "The page no longer exists." in model.errors


def test_publish_timestamp_kept_on_resave(store):
    model = PageEditModel(title="Launch", published=True)
    assert model.save(store)
    first = store.get_page(model.id).published
    assert first

    again = PageEditModel.get_by_id(store, model.id)
    assert again.published is True
    again.body = "changed"
    assert again.save(store)
    assert store.get_page(model.id).published == first


def test_unpublish_clears_timestamp(store):
    model = PageEditModel(title="Draft", published=True)
    model.save(store)
    model.published = False
    assert model.save(store)
    assert store.get_page(model.id).published is None


def test_get_by_id_missing(store):
    assert PageEditModel.get_by_id(store, uuid.uuid4()) is None


def test_list_model(store):
    PageEditModel(title="A").save(store)
    assert [p.title for p in PageListModel.get(store).pages] == ["A"]
