"""User model: the actor recorded on every audit row."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from adms.models.base import Base, TimestampMixin, UUIDMixin, generate_repr


class User(Base, UUIDMixin, TimestampMixin):
    """A person who performs activities on matters, documents and revisions."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    __repr__ = generate_repr("id", "name")
