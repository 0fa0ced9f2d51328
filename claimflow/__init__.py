"""
Claims adjudication pipeline.

Claims move through intake, validation, eligibility, pricing and decision
under a single state machine, with every transition recorded in an
append-only audit ledger.
"""

__version__ = "0.1.0"
