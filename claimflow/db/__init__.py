"""
Database Module for the Audit Ledger.
"""

from claimflow.db.connection import create_ledger_engine, create_session_maker, create_tables

__all__ = ["create_ledger_engine", "create_session_maker", "create_tables"]
