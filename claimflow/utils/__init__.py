"""
Shared utilities: error taxonomy, logging and money arithmetic.
"""
