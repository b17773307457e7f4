"""
Commission Exceptions
Custom exceptions for rate lookup and ledger writes.
"""


class CommissionError(Exception):
    """Base exception for commission errors."""
    error_code = 'commission_error'
    status_code = 400

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self):
        return {
            'error': self.error_code,
            'message': self.message,
            'details': self.details
        }


class RateNotConfigured(CommissionError):
    """No CommissionRate row exists for a role type."""
    error_code = 'rate_not_configured'
    status_code = 500

    def __init__(self, role_type: str):
        super().__init__(
            f"No commission rate configured for '{role_type}'",
            {'role_type': role_type}
        )
        self.role_type = role_type


class DuplicateLedgerEntry(CommissionError):
    """Ledger row for (order_id, product_id, commission_source) already exists."""
    error_code = 'duplicate_ledger_entry'
    status_code = 409

    def __init__(self, order_id: str, commission_source: str, product_id: str = ''):
        line = f"{order_id}/{product_id}" if product_id else order_id
        super().__init__(
            f"Ledger entry already recorded for order {line} ({commission_source})",
            {'order_id': order_id, 'product_id': product_id, 'commission_source': commission_source}
        )
