"""SQLAlchemy database models for the notekeeper storage core."""
from sqlalchemy import Boolean, Column, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base

# Create base class for SQLAlchemy models
Base = declarative_base()


class DBNote(Base):
    """Database model for a note."""
    __tablename__ = "notes"
    id = Column(Text, primary_key=True)
    title = Column(Text, nullable=False, default="", server_default="")
    content = Column(Text, nullable=False, default="", server_default="")
    folder_id = Column(Text, nullable=True)
    is_pinned = Column(Boolean, default=False, server_default="0")
    pinned_at = Column(Text, nullable=True)
    font = Column(Text, nullable=True)
    updated_at = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False)

    __table_args__ = (
        Index("idx_notes_folder_id", "folder_id"),
        Index("idx_notes_updated_at", updated_at.desc()),
        Index("idx_notes_is_pinned", "is_pinned"),
    )

    def __repr__(self) -> str:
        """Return string representation of note."""
        return f"<Note(id='{self.id}', title='{self.title}')>"


class DBFolder(Base):
    """Database model for a folder."""
    __tablename__ = "folders"
    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False)

    def __repr__(self) -> str:
        """Return string representation of folder."""
        return f"<Folder(id='{self.id}', name='{self.name}')>"


class DBSchemaMigration(Base):
    """Ledger of additive schema migrations applied to this database."""
    __tablename__ = "schema_migrations"
    version = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    applied_at = Column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<SchemaMigration(version={self.version}, name='{self.name}')>"


# FTS5 index over note text. ``id`` is stored for the join back to ``notes``
# but is not tokenized, so searches only match title and content.
NOTES_FTS_DDL = """
    CREATE VIRTUAL TABLE IF NOT EXISTS notes_fts USING fts5(
        id UNINDEXED,
        title,
        content
    )
"""
