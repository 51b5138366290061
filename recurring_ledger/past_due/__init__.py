"""Past-due occurrence detection."""

from recurring_ledger.past_due.detector import PastDueDetector

__all__ = ["PastDueDetector"]
