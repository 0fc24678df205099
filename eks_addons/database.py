"""SQLite state store for managed addons."""

import json
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from sqlalchemy import DateTime, String, Text, create_engine
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    sessionmaker,
)

from eks_addons.models import AddonState, AddonStatus, ResolveConflicts
from eks_addons.settings import get_settings


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


class AddonStateRecord(Base):
    """Database model for addon state, keyed by the encoded resource ID."""

    __tablename__ = "addon_states"

    id: Mapped[str] = mapped_column(String(256), primary_key=True)
    arn: Mapped[str] = mapped_column(String(512), nullable=False)
    cluster_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    addon_name: Mapped[str] = mapped_column(String(100), nullable=False)
    addon_version: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    resolve_conflicts: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    service_account_role_arn: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    configuration_values: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    tags: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    tags_all: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    modified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    refreshed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def to_state(self) -> AddonState:
        return AddonState(
            id=self.id,
            arn=self.arn,
            cluster_name=self.cluster_name,
            addon_name=self.addon_name,
            addon_version=self.addon_version,
            resolve_conflicts=ResolveConflicts(self.resolve_conflicts) if self.resolve_conflicts else None,
            service_account_role_arn=self.service_account_role_arn,
            configuration_values=self.configuration_values,
            status=AddonStatus(self.status) if self.status else None,
            tags=json.loads(self.tags),
            tags_all=json.loads(self.tags_all),
            created_at=self.created_at,
            modified_at=self.modified_at,
            refreshed_at=self.refreshed_at,
        )


class Database:
    """Database connection and state operations."""

    def __init__(self, database_url: str = "sqlite:///./eks_addons.db"):
        """Initialize database connection."""
        self.engine = create_engine(database_url, echo=False)
        self.SessionLocal = sessionmaker(bind=self.engine)
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    def save_state(self, state: AddonState) -> AddonState:
        """Insert or replace the state for a resource ID."""
        with self.get_session() as session:
            record = session.get(AddonStateRecord, state.id)
            if record is None:
                record = AddonStateRecord(id=state.id)
                session.add(record)

            record.arn = state.arn
            record.cluster_name = state.cluster_name
            record.addon_name = state.addon_name
            record.addon_version = state.addon_version
            record.resolve_conflicts = (
                state.resolve_conflicts.value if state.resolve_conflicts else None
            )
            record.service_account_role_arn = state.service_account_role_arn
            record.configuration_values = state.configuration_values
            record.status = state.status.value if state.status else None
            record.tags = json.dumps(state.tags, sort_keys=True)
            record.tags_all = json.dumps(state.tags_all, sort_keys=True)
            record.created_at = state.created_at
            record.modified_at = state.modified_at
            record.refreshed_at = datetime.now(timezone.utc)

            session.commit()
            session.refresh(record)
            return record.to_state()

    def get_state(self, resource_id: str) -> Optional[AddonState]:
        """Get the state for a resource ID."""
        with self.get_session() as session:
            record = session.get(AddonStateRecord, resource_id)
            return record.to_state() if record else None

    def exists(self, resource_id: str) -> bool:
        """Check if a resource ID is tracked in state."""
        return self.get_state(resource_id) is not None

    def delete_state(self, resource_id: str) -> bool:
        """Drop a resource from state."""
        with self.get_session() as session:
            record = session.get(AddonStateRecord, resource_id)
            if record is None:
                return False
            session.delete(record)
            session.commit()
            return True

    def list_states(self, cluster_name: Optional[str] = None) -> list[AddonState]:
        """List tracked addons, optionally for a single cluster."""
        with self.get_session() as session:
            query = session.query(AddonStateRecord)
            if cluster_name:
                query = query.filter_by(cluster_name=cluster_name)
            return [r.to_state() for r in query.order_by(AddonStateRecord.id).all()]


@lru_cache
def get_database() -> Database:
    return Database(get_settings().database_url)
