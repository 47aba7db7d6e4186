"""Catalog search providers and their response normalizers.

Both providers speak plain JSON over HTTP using **httpx**. Ids are
namespaced (``gbooks:`` / ``ol:``) so hits from the two catalogs never
collide with each other or with manually entered books.
"""

import logging
import re
from typing import Any, Optional

import httpx

from shelfsync.domain.entities import UNKNOWN_AUTHOR, UNKNOWN_TITLE, SearchCandidate
from shelfsync.domain.repositories import ICatalogProvider

logger = logging.getLogger(__name__)

_ISBN_SEPARATORS = re.compile(r"[-\s]")
_ISBN = re.compile(r"^\d{10}(\d{3})?$")


def clean_isbn(query: str) -> str:
    return _ISBN_SEPARATORS.sub("", query)


def is_isbn(query: str) -> bool:
    """True for 10 or 13 digits once hyphens and spaces are dropped."""
    return bool(_ISBN.match(clean_isbn(query)))


# ---------------------------------------------------------------------------
# Google Books (primary)
# ---------------------------------------------------------------------------
def normalize_google(item: dict[str, Any]) -> SearchCandidate:
    info = item.get("volumeInfo") or {}

    isbn: Optional[str] = None
    for identifier in info.get("industryIdentifiers") or []:
        if identifier.get("type") == "ISBN_13":
            isbn = identifier.get("identifier")
            break
        if identifier.get("type") == "ISBN_10" and not isbn:
            isbn = identifier.get("identifier")

    cover_url: Optional[str] = None
    image_links = info.get("imageLinks")
    if image_links:
        cover_url = (
            (image_links.get("thumbnail") or image_links.get("smallThumbnail") or "")
            .replace("http://", "https://")
            .replace("&edge=curl", "")
        ) or None

    publish_year: Optional[int] = None
    published = info.get("publishedDate")
    if published:
        try:
            publish_year = int(str(published)[:4])
        except ValueError:
            publish_year = None

    return SearchCandidate(
        id=f"gbooks:{item.get('id', '')}",
        title=info.get("title") or UNKNOWN_TITLE,
        authors=list(info.get("authors") or [UNKNOWN_AUTHOR]),
        isbn=isbn,
        cover_url=cover_url,
        publish_year=publish_year,
        page_count=info.get("pageCount") or None,
    )


class GoogleBooksProvider(ICatalogProvider):

    name = "google_books"

    def __init__(
        self,
        base_url: str = "https://www.googleapis.com/books/v1/volumes",
        api_key: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    async def search(self, query: str, limit: int) -> list[SearchCandidate]:
        q = f"isbn:{clean_isbn(query)}" if is_isbn(query) else query
        params: dict[str, Any] = {"q": q, "maxResults": limit, "printType": "books"}
        if self.api_key:
            params["key"] = self.api_key

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            resp = await client.get(self.base_url, params=params)
            resp.raise_for_status()
            data = resp.json()
        return [normalize_google(item) for item in (data.get("items") or [])[:limit]]


# ---------------------------------------------------------------------------
# Open Library (fallback)
# ---------------------------------------------------------------------------
OPEN_LIBRARY_FIELDS = "key,title,author_name,first_publish_year,isbn,cover_i,number_of_pages_median"


def normalize_open_library(doc: dict[str, Any]) -> SearchCandidate:
    cover_url = None
    if doc.get("cover_i"):
        cover_url = f"https://covers.openlibrary.org/b/id/{doc['cover_i']}-M.jpg"

    isbn = None
    isbns = doc.get("isbn") or []
    if isbns:
        # Prefer 13-digit ISBN
        isbn = next((value for value in isbns if len(value) == 13), isbns[0])

    return SearchCandidate(
        id="ol:" + (doc.get("key") or "").replace("/works/", ""),
        title=doc.get("title") or UNKNOWN_TITLE,
        authors=list(doc.get("author_name") or [UNKNOWN_AUTHOR]),
        isbn=isbn,
        cover_url=cover_url,
        publish_year=doc.get("first_publish_year") or None,
        page_count=doc.get("number_of_pages_median") or None,
    )


class OpenLibraryProvider(ICatalogProvider):

    name = "open_library"

    def __init__(
        self,
        base_url: str = "https://openlibrary.org/search.json",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    async def search(self, query: str, limit: int) -> list[SearchCandidate]:
        params: dict[str, Any] = {"fields": OPEN_LIBRARY_FIELDS, "limit": limit}
        if is_isbn(query):
            params["isbn"] = clean_isbn(query)
        else:
            params["q"] = query

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            resp = await client.get(self.base_url, params=params)
            resp.raise_for_status()
            data = resp.json()
        return [normalize_open_library(doc) for doc in (data.get("docs") or [])[:limit]]
