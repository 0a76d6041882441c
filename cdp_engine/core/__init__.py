"""
Core numeric types, domain models, contracts and errors.

This module contains the foundational building blocks that are independent
of the ledger, treasury, exchange and engine services.
"""
