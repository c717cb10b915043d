"""SQLAlchemy Models for the vault tables."""
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class KeyVersionRow(Base):
    """Key version metadata. Material lives in the platform secret store only."""
    __tablename__ = "key_versions"
    version = Column(Integer, primary_key=True, autoincrement=False)
    fingerprint = Column(String(64), nullable=False)
    is_active = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))


class SecureValueRow(Base):
    """AES-GCM sealed value (base64 nonce + ciphertext + tag)."""
    __tablename__ = "secure_values"
    ref_id = Column(String(64), primary_key=True)
    ciphertext = Column(Text, nullable=False)
    key_version = Column(Integer, ForeignKey("key_versions.version"), nullable=False, index=True)
    label = Column(String(255), nullable=True, unique=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, nullable=True)


class VariableRow(Base):
    __tablename__ = "variables"
    ref_id = Column(String(64), primary_key=True)
    value = Column(Text, nullable=False)
    label = Column(String(255), nullable=True, unique=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, nullable=True)
