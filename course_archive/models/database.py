"""
Database models for the course catalog

Uses UUID for resource IDs (assigned by the catalog on insert).
Blob content lives in the object store; rows only carry its storage path.
"""
from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import String, Integer, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class Course(Base):
    """Course code and display name. Resource counts are derived, not stored."""
    __tablename__ = "courses"
    
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    
    def __repr__(self):
        return f"<Course id={self.id} name={self.name}>"


class Resource(Base):
    """
    One uploaded file.
    
    Design:
    - course_id is free text (not a foreign key), uppercased by the writer
    - file_hash is indexed but NOT unique: duplicate prevention is a
      pre-insert existence check, so concurrent uploads of identical bytes
      can both land
    - uploader identity is copied from the session at insert time
    - only is_hidden and upvotes change after insert
    """
    __tablename__ = "resources"
    
    id: Mapped[str] = mapped_column(
        String(36), 
        primary_key=True, 
        default=lambda: str(uuid4())
    )
    course_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    year: Mapped[str] = mapped_column(String(32), nullable=False)
    semester: Mapped[int] = mapped_column(Integer, nullable=False)
    prof: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    
    # Stored verbatim, never sanitized
    filename: Mapped[str] = mapped_column(String(512), nullable=False)
    storage_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    file_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    
    uploader_email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    uploader_name: Mapped[str] = mapped_column(String(255), nullable=False)
    
    is_hidden: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    upvotes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    
    __table_args__ = (
        Index('idx_course_visible', 'course_id', 'is_hidden'),  # Course page listing
        Index('idx_hash_visible', 'file_hash', 'is_hidden'),  # Duplicate check
    )
    
    def __repr__(self):
        return f"<Resource id={self.id} course={self.course_id} file={self.filename} hash={self.file_hash[:8]}>"


class Interaction(Base):
    """Upvote/report log. Upvote counts on Resource are derived from it."""
    __tablename__ = "interactions"
    
    id: Mapped[str] = mapped_column(
        String(36), 
        primary_key=True, 
        default=lambda: str(uuid4())
    )
    user_email: Mapped[str] = mapped_column(String(320), nullable=False)
    resource_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey('resources.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    action_type: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    
    __table_args__ = (
        Index('idx_voter_resource_action', 'user_email', 'resource_id', 'action_type'),
    )
    
    def __repr__(self):
        return f"<Interaction {self.action_type} by={self.user_email} resource={self.resource_id}>"
