"""
web/models.py -- View-models for the page manager.

PageListModel and PageEditModel sit between web/routes.py and the content
store: routes never build Page objects or talk to the store directly, and the
templates only ever see these view-models.

PageEditModel.save() is the one place page validation happens. It returns
False (and fills model.errors) instead of raising, so the save route can
re-render the form with the submitted values intact.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy.exc import IntegrityError

from content.models import Page
from content.store import ContentStore

logger = logging.getLogger("pagedesk.web")

_MAX_TITLE = 128
_MAX_META_DESCRIPTION = 256
_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Lowercase ASCII slug: "Hello, World!" -> "hello-world"."""
    ascii_text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return _SLUG_STRIP.sub("-", ascii_text.lower()).strip("-")


@dataclass
class PageListModel:
    pages: list[Page] = field(default_factory=list)

    @classmethod
    def get(cls, store: ContentStore) -> "PageListModel":
        return cls(pages=store.list_pages())


@dataclass
class PageEditModel:
    id: Optional[str] = None
    title: str = ""
    slug: str = ""
    navigation_title: str = ""
    meta_keywords: str = ""
    meta_description: str = ""
    body: str = ""
    # Raw form text until validate() has parsed it.
    sort_order: Union[int, str] = 0
    published: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def is_new(self) -> bool:
        return self.id is None

    @classmethod
    def create(cls) -> "PageEditModel":
        return cls()

    @classmethod
    def get_by_id(cls, store: ContentStore, page_id) -> Optional["PageEditModel"]:
        page = store.get_page(str(page_id))
        if page is None:
            return None
        return cls(
            id=page.id,
            title=page.title,
            slug=page.slug,
            navigation_title=page.navigation_title or "",
            meta_keywords=page.meta_keywords or "",
            meta_description=page.meta_description or "",
            body=page.body,
            sort_order=page.sort_order,
            published=page.is_published,
        )

    def validate(self) -> list[str]:
        errors: list[str] = []
        title = self.title.strip()
        if not title:
            errors.append("Title is required.")
        elif len(title) > _MAX_TITLE:
            errors.append(f"Title must be {_MAX_TITLE} characters or fewer.")
        if len(self.navigation_title.strip()) > _MAX_TITLE:
            errors.append(f"Navigation title must be {_MAX_TITLE} characters or fewer.")
        if len(self.meta_description.strip()) > _MAX_META_DESCRIPTION:
            errors.append(f"Meta description must be {_MAX_META_DESCRIPTION} characters or fewer.")
        if title and not self.slug:
            errors.append("Slug must contain at least one letter or digit.")
        if self._parsed_sort_order() is None:
            errors.append("Sort order must be a whole number.")
        return errors

    def _parsed_sort_order(self) -> Optional[int]:
        if isinstance(self.sort_order, int):
            return self.sort_order
        text = self.sort_order.strip()
        if not text:
            return 0
        try:
            return int(text)
        except ValueError:
            return None

    def save(self, store: ContentStore) -> bool:
        """Validate and persist the model. Returns True on success."""
        self.slug = slugify(self.slug.strip() or self.title.strip())
        self.errors = self.validate()

        existing = store.get_page(self.id) if self.id else None
        if self.id and existing is None:
            self.errors.append("The page no longer exists.")
        if self.slug:
            other = store.get_page_by_slug(self.slug)
            if other is not None and other.id != self.id:
                self.errors.append(f"The slug '{self.slug}' is already used by another page.")
        if self.errors:
            return False

        published: Optional[str] = None
        if self.published:
            if existing is not None and existing.published:
                published = existing.published
            else:
                published = datetime.now(timezone.utc).isoformat()

        page = Page(
            id=self.id,
            title=self.title.strip(),
            slug=self.slug,
            navigation_title=self.navigation_title.strip() or None,
            meta_keywords=self.meta_keywords.strip() or None,
            meta_description=self.meta_description.strip() or None,
            body=self.body,
            sort_order=self._parsed_sort_order(),
            published=published,
        )
        try:
            self.id = store.save_page(page)
        except IntegrityError:
            logger.debug("Page save failed on slug %r", self.slug, exc_info=True)
            self.errors.append(f"The slug '{self.slug}' is already used by another page.")
            return False
        return True
