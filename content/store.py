"""
content/store.py -- SQLAlchemy-backed content API for PageDesk.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in content/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. ContentStore is the repository; _row_to_page
is the mapper. Route handlers and view-models never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = ContentStore()                               # SQLite default
    store = ContentStore("postgresql://user:pw@host/db") # PostgreSQL
    page_id = store.save_page(Page(title="About", slug="about"))
    pages = store.list_pages()
    store.close()
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

from content.models import Page

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_pages = Table(
    "pages",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("title", String(128), nullable=False),
    Column("slug", String(128), nullable=False, unique=True),
    Column("navigation_title", String(128)),
    Column("meta_keywords", String(128)),
    Column("meta_description", String(256)),
    Column("body", Text, nullable=False, server_default=""),
    Column("sort_order", Integer, nullable=False, server_default="0"),
    Column("published", String(32)),
    Column("created", String(32), nullable=False),
    Column("last_modified", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ContentStore:
    def __init__(self, db_url: str = "sqlite:///pagedesk_content.db") -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # The same engine is used from the ASGI server's worker threads.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    def list_pages(self) -> list[Page]:
        """Return all pages in site order (sort_order, then title)."""
        with self.engine.connect() as conn:
            rows = conn.execute(_pages.select().order_by(_pages.c.sort_order, _pages.c.title)).fetchall()
        return [_row_to_page(r) for r in rows]

    def get_page(self, page_id: str) -> Optional[Page]:
        """Fetch a single page by ID. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_pages.select().where(_pages.c.id == str(page_id))).fetchone()
        return _row_to_page(row) if row is not None else None

    def get_page_by_slug(self, slug: str) -> Optional[Page]:
        with self.engine.connect() as conn:
            row = conn.execute(_pages.select().where(_pages.c.slug == slug)).fetchone()
        return _row_to_page(row) if row is not None else None

    def save_page(self, page: Page) -> str:
        """Insert or update a page and return its ID.

        A page without an ID, or with an ID not yet in the store, is inserted
        and stamped with created; every save stamps last_modified.
        Raises sqlalchemy.exc.IntegrityError if the slug is already used by
        another page -- callers should catch it and report a validation error.
        """
        now = _now_iso()
        values = {
            "title": page.title,
            "slug": page.slug,
            "navigation_title": page.navigation_title,
            "meta_keywords": page.meta_keywords,
            "meta_description": page.meta_description,
            "body": page.body,
            "sort_order": page.sort_order,
            "published": page.published,
            "last_modified": now,
        }
        with self.engine.connect() as conn:
            existing = None
            if page.id:
                existing = conn.execute(_pages.select().where(_pages.c.id == str(page.id))).fetchone()
            if existing is None:
                page_id = str(page.id) if page.id else str(uuid.uuid4())
                conn.execute(_pages.insert().values(id=page_id, created=now, **values))
            else:
                page_id = existing.id
                conn.execute(_pages.update().where(_pages.c.id == page_id).values(**values))
            conn.commit()
        page.id = page_id
        page.last_modified = now
        return page_id

    def delete_page(self, page_id: str) -> bool:
        """Delete a page. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_pages.delete().where(_pages.c.id == str(page_id)))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_page(row) -> Page:
    return Page(
        id=row.id,
        title=row.title,
        slug=row.slug,
        navigation_title=row.navigation_title,
        meta_keywords=row.meta_keywords,
        meta_description=row.meta_description,
        body=row.body or "",
        sort_order=row.sort_order,
        published=row.published,
        created=row.created,
        last_modified=row.last_modified,
    )
