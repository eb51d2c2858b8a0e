"""
Stock kernel: FEFO allocation, expiry classification, audited adjustments
and deduplicated replenishment for a multi-tenant warehouse inventory.

Layers (inner to outer):
    domain/     pure types, rules, planning and events (no I/O)
    db/         SQLAlchemy base, column types, engine and sessions
    models/     ORM models and validated factories
    selectors/  read-only queries returning DTOs
    services/   write side; StockEngine is the caller-facing entry point
"""

from stock_kernel.services.stock_engine import StockEngine

__all__ = ["StockEngine"]
