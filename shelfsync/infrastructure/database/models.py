"""SQLAlchemy database models."""

from sqlalchemy import JSON, BigInteger, CheckConstraint, Column, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class BookModel(Base):
    __tablename__ = "books"
    __table_args__ = (
        CheckConstraint("rating >= 0 AND rating <= 5", name="ck_books_rating_range"),
        Index("ix_books_list_date_added", "list", "date_added"),
    )

    id = Column(String(255), primary_key=True)
    title = Column(String(512), nullable=False)
    authors = Column(JSON, nullable=False, default=list)
    isbn = Column(String(32), nullable=True)
    cover_url = Column(Text, nullable=True)
    publish_year = Column(Integer, nullable=True)
    page_count = Column(Integer, nullable=True)
    book_list = Column("list", String(20), nullable=False, index=True)  # wantToRead|read|own
    date_added = Column(BigInteger, nullable=False, index=True)  # epoch millis
    notes = Column(Text, nullable=False, default="")
    rating = Column(Integer, nullable=False, default=0)
    categories = Column(JSON, nullable=False, default=list)  # at most 2 labels


class LibrarySettingsModel(Base):
    """Local copy of the per-user settings document, one row per key."""

    __tablename__ = "library_settings"

    key = Column(String(100), primary_key=True)
    value = Column(JSON, nullable=True)
