"""
SQLAlchemy Models for the Audit Ledger.
"""

from claimflow.models.audit import AuditEntryRecord
from claimflow.models.base import Base

__all__ = ["Base", "AuditEntryRecord"]
