from dataclasses import dataclass


@dataclass
class RequestContext:
    """Request-scoped context containing the authenticated user"""
    user_id: str
