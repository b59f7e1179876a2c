"""
Stored authorization attribute model and the mixin host models use to join it.

Each row holds one serialized clause for one record. A record's stored
attribute set is every row sharing its (authorizable_type, authorizable_id).
"""
from typing import Any, List
from sqlalchemy import String, UniqueConstraint, Index, and_, cast
from sqlalchemy.orm import Mapped, mapped_column, relationship, declared_attr, foreign, remote
from ulid import ULID

from authorization_attrs.core.database.base import Base


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


def type_tag(record_type: Any) -> str:
    """
    Return the authorizable_type tag for a model class, a record or a tag.

    Tags are mapped class names, so Article and Article() both map to "Article".
    """
    if isinstance(record_type, str):
        return record_type
    if isinstance(record_type, type):
        return record_type.__name__
    return type(record_type).__name__


class AuthorizationAttr(Base):
    """
    One serialized clause belonging to one record.

    Examples:
    - authorizable_type="Article", authorizable_id="01J...", name="group_id=1"
    - authorizable_type="Article", authorizable_id="01J...", name="owner_id=7&public=true"
    """
    __tablename__ = "authorization_attrs"
    __table_args__ = (
        UniqueConstraint(
            "authorizable_type",
            "authorizable_id",
            "name",
            name="uq_authorization_attrs_authorizable_name",
        ),
        Index("ix_authorization_attrs_type_name", "authorizable_type", "name"),
    )

    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Serialized clause, e.g. "bar=false&foo_id=2"
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Owning record; ids are stored as text so any primary key type fits
    authorizable_type: Mapped[str] = mapped_column(String(100), nullable=False)
    authorizable_id: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<AuthorizationAttr(id={self.id}, {self.authorizable_type}:{self.authorizable_id}, "
            f"name={self.name!r})>"
        )


class Authorizable:
    """
    Mixin for host models whose records are searched by permission.

    Adds a read-only authorization_attrs relationship joined on the record's
    id (cast to text, so integer keys work too) and class name. The host model
    must have an `id` primary key column. Mapped subclasses inherit the
    relationship of the class that declares it; permission searches join on
    the searched class's own tag instead.

    Usage:
        class Article(Base, Authorizable):
            __tablename__ = "articles"
            id: Mapped[str] = mapped_column(String(26), primary_key=True)
    """

    @declared_attr
    def authorization_attrs(cls) -> Mapped[List["AuthorizationAttr"]]:
        return relationship(
            AuthorizationAttr,
            primaryjoin=lambda: and_(
                cast(cls.id, String) == foreign(remote(AuthorizationAttr.authorizable_id)),
                AuthorizationAttr.authorizable_type == cls.__name__,
            ),
            viewonly=True,
            lazy="selectin",
        )
