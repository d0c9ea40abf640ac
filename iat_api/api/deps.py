"""
Shared endpoint dependencies.
"""
from fastapi import Request

from iat_api.storage.base import ResultStore


def get_store(request: Request) -> ResultStore:
    """Return the result store created in the application lifespan."""
    return request.app.state.store
