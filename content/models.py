"""
content/models.py -- Domain dataclasses for managed content.

These are pure data containers. Validation and slug rules
live in web/models.py (the edit view-model); persistence lives in
content/store.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Page:
    """A page in the site tree.

    id is a UUID string. It is None before the page is first saved; the store
    assigns one on insert. published is the ISO 8601 publish timestamp, or
    None for drafts.
    """

    title: str
    slug: str
    id: Optional[str] = None
    navigation_title: Optional[str] = None
    meta_keywords: Optional[str] = None
    meta_description: Optional[str] = None
    body: str = ""
    sort_order: int = 0
    published: Optional[str] = None
    created: str = ""  # ISO 8601, set by store on insert
    last_modified: str = ""  # ISO 8601, set by store on every save

    @property
    def is_published(self) -> bool:
        return self.published is not None
