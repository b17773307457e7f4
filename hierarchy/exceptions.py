"""
Hierarchy Exceptions
Custom exceptions for referral code resolution.
"""


class HierarchyError(Exception):
    """Base exception for hierarchy errors."""
    error_code = 'hierarchy_error'
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


class ActorNotFound(HierarchyError):
    """Referral code does not belong to any active actor."""
    error_code = 'actor_not_found'
    status_code = 404

    def __init__(self, referral_code: str, role: str = None, message: str = None):
        details = {'referral_code': referral_code}
        if role:
            details['role'] = role
        super().__init__(
            message or f"No active actor found for referral code '{referral_code}'",
            details
        )
        self.referral_code = referral_code
