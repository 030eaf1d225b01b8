"""
SQLAlchemy ORM Models for the prototype showcase

- User: Admin, viewer and prospect accounts (role column, invite token)
- Prototype: Uploaded HTML/ZIP prototype with publish status
- MagicLink: Bearer-token share link (prototype link or homepage link)
- LinkView: One row per magic-link view, with optional prospect identity
- Feedback: Structured prospect feedback (rating, category)
- AccessRequest: Approval workflow for top-secret prototypes
- UserPrototypeAccess: Assigns prototypes to viewer accounts
- Annotation: Guided-tour hotspots on a prototype page
- AuditLog: Request and domain-event audit trail
- AppSetting: Runtime-editable settings (Slack, branding)
"""

from sqlalchemy import (
    Column, String, Integer, Text, TIMESTAMP, ForeignKey, Boolean, JSON,
    Index, TypeDecorator, UniqueConstraint,
)
from sqlalchemy.orm import relationship, declarative_base
from sqlalchemy.dialects.postgresql import UUID as PostgreSQL_UUID, JSONB
import uuid
from datetime import datetime

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


# UUID type that works with both PostgreSQL and SQLite
class UUID(TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL's UUID type when available, otherwise stores as String(36).
    """
    impl = String
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(PostgreSQL_UUID(as_uuid=True))
        else:
            return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        elif dialect.name == 'postgresql':
            return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        else:
            if isinstance(value, uuid.UUID):
                return str(value)
            else:
                return str(uuid.UUID(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        elif isinstance(value, uuid.UUID):
            return value
        else:
            return uuid.UUID(value)


# =============================================================================
# Users
# =============================================================================

class User(Base):
    """Account with a single role: admin, viewer or prospect."""
    __tablename__ = "users"

    user_id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255), nullable=False, default="")
    password_hash = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default="viewer")      # admin, viewer, prospect
    is_active = Column(Boolean, nullable=False, default=False)
    invite_token = Column(String(128), nullable=True)
    invite_expires_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, default=datetime.utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    prototype_access = relationship(
        "UserPrototypeAccess",
        foreign_keys="[UserPrototypeAccess.user_id]",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<User(user_id={self.user_id}, email='{self.email}', role='{self.role}')>"


# =============================================================================
# Prototypes
# =============================================================================

class Prototype(Base):
    """Uploaded static prototype (single HTML page or extracted ZIP)."""
    __tablename__ = "prototypes"
    __table_args__ = (
        Index('idx_prototypes_status', 'status', 'created_at'),
    )

    prototype_id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    description = Column(Text, default="")
    slug = Column(String(255), unique=True, nullable=False)
    status = Column(String(20), default='draft', nullable=False)     # draft, published, archived
    type = Column(String(20), default='html', nullable=False)        # html, zip
    file_path = Column(String(1024), nullable=True)                  # entry file, relative to prototype dir
    thumbnail_path = Column(String(1024), nullable=True)
    version = Column(String(20), default='1.0', nullable=False)
    is_top_secret = Column(Boolean, default=False, nullable=False)
    created_by = Column(UUID(), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    created_at = Column(TIMESTAMP, default=datetime.utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    creator = relationship("User", foreign_keys=[created_by])
    magic_links = relationship("MagicLink", back_populates="prototype", cascade="all, delete-orphan", passive_deletes=True)
    views = relationship("LinkView", back_populates="prototype", cascade="all, delete-orphan", passive_deletes=True)
    feedback = relationship("Feedback", back_populates="prototype", cascade="all, delete-orphan", passive_deletes=True)
    annotations = relationship("Annotation", back_populates="prototype", cascade="all, delete-orphan", passive_deletes=True)
    access_requests = relationship("AccessRequest", back_populates="prototype", cascade="all, delete-orphan", passive_deletes=True)
    access_grants = relationship("UserPrototypeAccess", back_populates="prototype", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self):
        return f"<Prototype(prototype_id={self.prototype_id}, slug='{self.slug}', status='{self.status}')>"


class UserPrototypeAccess(Base):
    """Assigns a prototype to a viewer account."""
    __tablename__ = "user_prototype_access"
    __table_args__ = (
        UniqueConstraint('user_id', 'prototype_id', name='uq_user_prototype_access'),
        Index('idx_user_prototype_access_user', 'user_id'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(UUID(), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    prototype_id = Column(UUID(), ForeignKey("prototypes.prototype_id", ondelete="CASCADE"), nullable=False)
    assigned_by = Column(UUID(), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    created_at = Column(TIMESTAMP, default=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", foreign_keys=[user_id], back_populates="prototype_access")
    prototype = relationship("Prototype", back_populates="access_grants")
    assigned_by_user = relationship("User", foreign_keys=[assigned_by])

    def __repr__(self):
        return f"<UserPrototypeAccess(user_id={self.user_id}, prototype_id={self.prototype_id})>"


# =============================================================================
# Magic Links
# =============================================================================

class MagicLink(Base):
    """Bearer-token share link.

    A NULL prototype_id marks a homepage link that lists every
    published prototype.
    """
    __tablename__ = "magic_links"
    __table_args__ = (
        Index('idx_magic_links_prototype', 'prototype_id'),
        Index('idx_magic_links_recipient', 'recipient_email'),
    )

    link_id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    token = Column(String(128), unique=True, nullable=False)
    prototype_id = Column(UUID(), ForeignKey("prototypes.prototype_id", ondelete="CASCADE"), nullable=True)
    label = Column(String(255), nullable=False)
    recipient_email = Column(String(255), nullable=True)
    created_by = Column(UUID(), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    expires_at = Column(TIMESTAMP, nullable=True)
    is_revoked = Column(Boolean, default=False, nullable=False)
    view_count = Column(Integer, default=0, nullable=False)
    password_hash = Column(String(255), nullable=True)
    branding_config = Column(JSONType, nullable=True)
    created_at = Column(TIMESTAMP, default=datetime.utcnow, nullable=False)

    # Relationships
    prototype = relationship("Prototype", back_populates="magic_links")
    creator = relationship("User", foreign_keys=[created_by])
    views = relationship("LinkView", back_populates="magic_link", cascade="all, delete-orphan", passive_deletes=True)

    @property
    def is_homepage(self) -> bool:
        return self.prototype_id is None

    def __repr__(self):
        return f"<MagicLink(link_id={self.link_id}, label='{self.label}', revoked={self.is_revoked})>"


class LinkView(Base):
    """One recorded view of a magic link."""
    __tablename__ = "link_views"
    __table_args__ = (
        Index('idx_link_views_link', 'magic_link_id', 'viewed_at'),
        Index('idx_link_views_prototype', 'prototype_id', 'viewed_at'),
    )

    view_id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    magic_link_id = Column(UUID(), ForeignKey("magic_links.link_id", ondelete="CASCADE"), nullable=True)
    prototype_id = Column(UUID(), ForeignKey("prototypes.prototype_id", ondelete="CASCADE"), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    prospect_name = Column(String(255), nullable=True)
    prospect_email = Column(String(255), nullable=True)
    prospect_company = Column(String(255), nullable=True)
    duration_seconds = Column(Integer, nullable=True)
    viewed_at = Column(TIMESTAMP, default=datetime.utcnow, nullable=False)

    # Relationships
    magic_link = relationship("MagicLink", back_populates="views")
    prototype = relationship("Prototype", back_populates="views")

    def __repr__(self):
        return f"<LinkView(view_id={self.view_id}, link={self.magic_link_id})>"


# =============================================================================
# Feedback & Access Requests
# =============================================================================

class Feedback(Base):
    """Structured prospect feedback on a prototype."""
    __tablename__ = "prospect_feedback"
    __table_args__ = (
        Index('idx_feedback_prototype', 'prototype_id', 'created_at'),
    )

    feedback_id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    prototype_id = Column(UUID(), ForeignKey("prototypes.prototype_id", ondelete="CASCADE"), nullable=False)
    user_id = Column(UUID(), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    magic_link_id = Column(UUID(), ForeignKey("magic_links.link_id", ondelete="SET NULL"), nullable=True)
    comment = Column(Text, nullable=False)
    rating = Column(Integer, nullable=True)                          # 1-5 stars
    category = Column(String(50), default='general', nullable=False)  # ui, navigation, feature, performance, general
    reviewer_name = Column(String(255), nullable=True)
    reviewer_email = Column(String(255), nullable=True)
    created_at = Column(TIMESTAMP, default=datetime.utcnow, nullable=False)

    # Relationships
    prototype = relationship("Prototype", back_populates="feedback")

    def __repr__(self):
        return f"<Feedback(feedback_id={self.feedback_id}, rating={self.rating}, category='{self.category}')>"


class AccessRequest(Base):
    """Request to view a top-secret prototype, reviewed by an admin."""
    __tablename__ = "prototype_access_requests"
    __table_args__ = (
        Index('idx_access_requests_status', 'status', 'created_at'),
        Index('idx_access_requests_email', 'requester_email', 'prototype_id'),
    )

    request_id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    prototype_id = Column(UUID(), ForeignKey("prototypes.prototype_id", ondelete="CASCADE"), nullable=False)
    magic_link_id = Column(UUID(), ForeignKey("magic_links.link_id", ondelete="SET NULL"), nullable=True)
    requester_name = Column(String(255), nullable=False)
    requester_email = Column(String(255), nullable=False)
    requester_company = Column(String(255), nullable=True)
    reason = Column(Text, nullable=True)
    status = Column(String(20), default='pending', nullable=False)   # pending, approved, denied
    reviewed_by = Column(UUID(), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, default=datetime.utcnow, nullable=False)

    # Relationships
    prototype = relationship("Prototype", back_populates="access_requests")
    magic_link = relationship("MagicLink")
    reviewer = relationship("User", foreign_keys=[reviewed_by])

    def __repr__(self):
        return f"<AccessRequest(request_id={self.request_id}, email='{self.requester_email}', status='{self.status}')>"


# =============================================================================
# Annotations
# =============================================================================

class Annotation(Base):
    """Guided-tour hotspot placed on a prototype page."""
    __tablename__ = "prototype_annotations"
    __table_args__ = (
        Index('idx_annotations_prototype_step', 'prototype_id', 'step_order'),
    )

    annotation_id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    prototype_id = Column(UUID(), ForeignKey("prototypes.prototype_id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    x_percent = Column(Integer, default=50, nullable=False)
    y_percent = Column(Integer, default=50, nullable=False)
    step_order = Column(Integer, default=1, nullable=False)
    page_path = Column(String(1024), default='index.html', nullable=False)
    created_by = Column(UUID(), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    created_at = Column(TIMESTAMP, default=datetime.utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    prototype = relationship("Prototype", back_populates="annotations")

    def __repr__(self):
        return f"<Annotation(annotation_id={self.annotation_id}, step={self.step_order}, title='{self.title}')>"


# =============================================================================
# Audit & Settings
# =============================================================================

class AuditLog(Base):
    """Audit trail: one row per audited request or domain event."""
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index('idx_audit_logs_created', 'created_at'),
        Index('idx_audit_logs_user', 'user_id', 'created_at'),
        Index('idx_audit_logs_action', 'action'),
    )

    log_id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    action = Column(String(100), nullable=False)           # http:request, auth:login, user:invite, ...
    resource_type = Column(String(50), nullable=False)
    resource_id = Column(String(255), nullable=True)
    details = Column(JSONType, default=dict)
    ip_address = Column(String(64), nullable=True)
    method = Column(String(10), nullable=True)
    path = Column(String(2048), nullable=True)
    status_code = Column(Integer, nullable=True)
    created_at = Column(TIMESTAMP, default=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User")

    def __repr__(self):
        return f"<AuditLog(log_id={self.log_id}, action='{self.action}', status={self.status_code})>"


class AppSetting(Base):
    """Runtime-editable setting stored as JSON."""
    __tablename__ = "app_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    setting_key = Column(String(100), unique=True, nullable=False)
    setting_value = Column(JSONType, nullable=True)
    description = Column(Text, nullable=True)
    updated_at = Column(TIMESTAMP, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<AppSetting(key='{self.setting_key}')>"
