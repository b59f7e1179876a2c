"""
SQLAlchemy declarative base.

The authorization_attrs table is declared on this base. Host models may share it
so that init_db() creates their tables too, but any DeclarativeBase works.
"""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for the package's SQLAlchemy models.

    Usage:
        from authorization_attrs.core.database.base import Base
        from authorization_attrs import Authorizable

        class Article(Base, Authorizable):
            __tablename__ = "articles"

            id: Mapped[str] = mapped_column(String(26), primary_key=True)
    """
    pass
