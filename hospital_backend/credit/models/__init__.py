# credit/models/__init__.py

from .settlement_audit import SettlementAudit

__all__ = ["SettlementAudit"]
