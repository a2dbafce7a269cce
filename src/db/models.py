"""Database models for actors and their items."""

from sqlalchemy import (
    JSON,
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models."""


class ActorModel(Base):
    """ORM model for actors (item owners)."""

    __tablename__ = "actors"

    actor_id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # 화폐 단위 → 개수 ({"gp": 120, "sp": 30})
    currency: Mapped[dict] = mapped_column(JSON, default=dict)

    # 호스트 파생값. encumbrance_value는 Projector가 조정 무게로 덮어쓴다.
    encumbrance_value: Mapped[float] = mapped_column(Float, default=0.0)
    encumbrance_max: Mapped[float] = mapped_column(Float, default=0.0)
    encumbered_at: Mapped[float] = mapped_column(Float, default=0.0)
    heavily_encumbered_at: Mapped[float] = mapped_column(Float, default=0.0)

    items: Mapped[list["ItemModel"]] = relationship(
        "ItemModel", back_populates="actor", cascade="all, delete-orphan"
    )


class ItemModel(Base):
    """ORM model for items. Container fields are only meaningful for kind='container'."""

    __tablename__ = "items"

    item_id: Mapped[str] = mapped_column(String, primary_key=True)
    actor_id: Mapped[str] = mapped_column(
        String, ForeignKey("actors.actor_id"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    kind: Mapped[str] = mapped_column(String, nullable=False, default="plain")

    weight_value: Mapped[float] = mapped_column(Float, default=0.0)
    weight_unit: Mapped[str | None] = mapped_column(String, nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1)

    # 끊어진 참조도 허용 (계산 시 최상위로 취급). FK 없음
    container_id: Mapped[str | None] = mapped_column(String, nullable=True)

    capacity_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    capacity_unit: Mapped[str | None] = mapped_column(String, nullable=True)
    reduction_pct: Mapped[int] = mapped_column(Integer, default=0)
    reduces_currency: Mapped[bool] = mapped_column(Boolean, default=False)

    actor: Mapped["ActorModel"] = relationship("ActorModel", back_populates="items")

    __table_args__ = (
        Index("idx_item_actor", "actor_id"),
        Index("idx_item_container", "actor_id", "container_id"),
    )
