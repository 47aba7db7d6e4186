"""Repository implementations for the local record store."""

import asyncio
import logging
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from shelfsync.domain.entities import BookList, BookRecord, Presence
from shelfsync.domain.exceptions import AlreadyExists, InvalidRecord, NotFound, StorageUnavailable
from shelfsync.domain.repositories import IRecordStore, ISettingsStore, Mutator
from shelfsync.infrastructure.database.connection import create_session_maker, init_db
from shelfsync.infrastructure.database.models import BookModel, LibrarySettingsModel

logger = logging.getLogger(__name__)

CATEGORIES_KEY = "categories"


# ---------------------------------------------------------------------------
# Record Store
# ---------------------------------------------------------------------------
class SqlRecordStore(IRecordStore):
    """Book records in a relational table, indexed by list.

    Every write runs under one ``asyncio.Lock``: get-then-put mutations on the
    same id never interleave, and ``replace_all`` never overlaps a mutation.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_maker = create_session_maker(engine)
        self._write_lock = asyncio.Lock()
        self._initialized = False

    async def initialize(self) -> None:
        if self._initialized:
            return
        try:
            await init_db(self.engine)
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Local storage unavailable: %s", exc)
            raise StorageUnavailable(str(exc)) from exc
        self._initialized = True
        logger.info("Record store initialized (%s)", self.engine.url.render_as_string())

    async def get_by_list(self, book_list: BookList) -> list[BookRecord]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(BookModel)
                .where(BookModel.book_list == BookList(book_list).value)
                .order_by(BookModel.date_added.desc())
            )
            return [self._to_entity(model) for model in result.scalars().all()]

    async def get_all(self) -> list[BookRecord]:
        async with self.session_maker() as session:
            result = await session.execute(select(BookModel))
            return [self._to_entity(model) for model in result.scalars().all()]

    async def get(self, book_id: str) -> Optional[BookRecord]:
        async with self.session_maker() as session:
            model = await session.get(BookModel, book_id)
            return self._to_entity(model) if model else None

    async def exists(self, book_id: str) -> Presence:
        async with self.session_maker() as session:
            result = await session.execute(
                select(BookModel.book_list).where(BookModel.id == book_id)
            )
            book_list = result.scalar_one_or_none()
        if book_list is None:
            return Presence(exists=False)
        return Presence(exists=True, book_list=BookList(book_list))

    async def add(self, record: BookRecord) -> BookRecord:
        record.validate()
        async with self._write_lock:
            async with self.session_maker() as session:
                async with session.begin():
                    existing = await session.get(BookModel, record.id)
                    if existing is not None:
                        raise AlreadyExists(record.id, existing.book_list)
                    session.add(self._to_model(record))
        logger.debug("Added %s to %s", record.id, record.book_list.value)
        return record

    async def update(self, book_id: str, mutator: Mutator) -> BookRecord:
        async with self._write_lock:
            async with self.session_maker() as session:
                async with session.begin():
                    model = await session.get(BookModel, book_id)
                    if model is None:
                        raise NotFound(book_id)
                    updated = mutator(self._to_entity(model))
                    if updated.id != book_id:
                        raise InvalidRecord("Book id is immutable")
                    updated.validate()
                    self._copy_fields(updated, model)
        return updated

    async def remove(self, book_id: str) -> bool:
        async with self._write_lock:
            async with self.session_maker() as session:
                async with session.begin():
                    result = await session.execute(delete(BookModel).where(BookModel.id == book_id))
        return result.rowcount > 0

    async def replace_all(self, records: list[BookRecord]) -> None:
        # Last occurrence of an id wins
        by_id = {record.id: record for record in records}
        async with self._write_lock:
            async with self.session_maker() as session:
                async with session.begin():
                    await session.execute(delete(BookModel))
                    session.add_all([self._to_model(record) for record in by_id.values()])
        logger.info("Record store replaced with %d records", len(by_id))

    async def counts_by_list(self) -> dict[BookList, int]:
        counts = {book_list: 0 for book_list in BookList}
        async with self.session_maker() as session:
            result = await session.execute(
                select(BookModel.book_list, func.count()).group_by(BookModel.book_list)
            )
            for book_list, count in result.all():
                try:
                    counts[BookList(book_list)] = count
                except ValueError:
                    logger.warning("Ignoring records on unknown list %r", book_list)
        return counts

    async def close(self) -> None:
        await self.engine.dispose()

    @staticmethod
    def _copy_fields(record: BookRecord, model: BookModel) -> None:
        model.title = record.title
        model.authors = list(record.authors)
        model.isbn = record.isbn
        model.cover_url = record.cover_url
        model.publish_year = record.publish_year
        model.page_count = record.page_count
        model.book_list = record.book_list.value
        model.date_added = record.date_added
        model.notes = record.notes
        model.rating = record.rating
        model.categories = list(record.categories)

    @classmethod
    def _to_model(cls, record: BookRecord) -> BookModel:
        model = BookModel(id=record.id)
        cls._copy_fields(record, model)
        return model

    @staticmethod
    def _to_entity(model: BookModel) -> BookRecord:
        return BookRecord(
            id=model.id,
            title=model.title,
            authors=list(model.authors or []),
            isbn=model.isbn,
            cover_url=model.cover_url,
            publish_year=model.publish_year,
            page_count=model.page_count,
            book_list=BookList(model.book_list),
            date_added=model.date_added,
            notes=model.notes or "",
            rating=model.rating or 0,
            categories=list(model.categories or []),
        )


# ---------------------------------------------------------------------------
# Settings Repository
# ---------------------------------------------------------------------------
class SettingsRepository(ISettingsStore):

    def __init__(self, engine: AsyncEngine):
        self.session_maker = create_session_maker(engine)

    async def get_category_labels(self) -> list[str]:
        async with self.session_maker() as session:
            model = await session.get(LibrarySettingsModel, CATEGORIES_KEY)
            return list(model.value or []) if model else []

    async def set_category_labels(self, labels: list[str]) -> list[str]:
        cleaned: list[str] = []
        for label in labels:
            label = label.strip()
            if label and label not in cleaned:
                cleaned.append(label)
        async with self.session_maker() as session:
            async with session.begin():
                model = await session.get(LibrarySettingsModel, CATEGORIES_KEY)
                if model is None:
                    session.add(LibrarySettingsModel(key=CATEGORIES_KEY, value=cleaned))
                else:
                    model.value = cleaned
        return cleaned
