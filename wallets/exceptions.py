"""
Wallet Exceptions
Custom exceptions for balances and the withdrawal lifecycle.
"""


class WalletError(Exception):
    """Base exception for wallet errors."""
    error_code = 'wallet_error'
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


class InsufficientBalance(WalletError):
    """Withdrawal exceeds the available balance at approval time."""
    error_code = 'insufficient_balance'
    status_code = 422

    def __init__(self, requested, available):
        super().__init__(
            f"Insufficient balance: requested ₹{requested}, available ₹{available}",
            {'requested': str(requested), 'available': str(available)}
        )
        self.requested = requested
        self.available = available


class InvalidStateTransition(WalletError):
    """Withdrawal action not allowed from its current status."""
    error_code = 'invalid_state_transition'
    status_code = 409

    def __init__(self, current_status, target_status):
        super().__init__(
            f"Cannot move withdrawal from {current_status} to {target_status}",
            {'current_status': current_status, 'target_status': target_status}
        )
        self.current_status = current_status
        self.target_status = target_status


class WithdrawalValidationError(WalletError):
    """Request breaks a withdrawal rule (minimum, pending request, payment details)."""
    error_code = 'validation_error'
    status_code = 422


class ForbiddenError(WalletError):
    """Withdrawal belongs to another actor."""
    error_code = 'forbidden'
    status_code = 403
