"""
Error kinds shared across Pennywise.

Route handlers map these onto responses:
- ValidationError    -> 400 (rejected before persistence)
- NotFoundError      -> 404 (referenced id does not exist)
- AuthorizationError -> 403 (record exists but belongs to someone else)
- UpstreamFailure    -> 503 (storage or clock unavailable)
"""

from typing import Optional


class FinanceError(Exception):
    """Base exception for all Pennywise errors."""
    pass


class ValidationError(FinanceError):
    """Input rejected before any write."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(FinanceError):
    """Referenced budget, expense, goal or income does not exist."""

    def __init__(self, entity_type: str, entity_id: object):
        super().__init__(f"{entity_type.capitalize()} not found: {entity_id}")
        self.entity_type = entity_type
        self.entity_id = entity_id


class AuthorizationError(FinanceError):
    """Record exists but is owned by a different user."""

    def __init__(self, entity_type: str, entity_id: object):
        super().__init__(f"Unauthorized: You do not own this {entity_type}")
        self.entity_type = entity_type
        self.entity_id = entity_id


class UpstreamFailure(FinanceError):
    """A collaborator (storage, clock) could not serve the request."""
    pass
