import uuid as uuid_pkg
from datetime import UTC, datetime

from sqlalchemy import DateTime, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, MappedAsDataclass, mapped_column


class UUIDMixin(MappedAsDataclass):
    """Mixin adding a UUID primary key named ``id``.

    The id is generated client-side with uuid4 when the object is constructed,
    so it is known before the row is flushed; ``gen_random_uuid()`` covers rows
    inserted outside the ORM. Excluded from ``__init__``.
    """

    id: Mapped[uuid_pkg.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default_factory=uuid_pkg.uuid4,
        server_default=text("gen_random_uuid()"),
        init=False,
    )


class TimestampMixin(MappedAsDataclass):
    """Mixin for UTC ``created_at`` and ``updated_at`` columns.

    Both are set on construction and excluded from ``__init__``. Services bump
    ``updated_at`` explicitly when they change a row.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        init=False,
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        default_factory=lambda: datetime.now(UTC),
        nullable=True,
        init=False,
    )
