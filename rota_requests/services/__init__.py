"""
Service layer for the Rota Requests server
"""
from .request_store import RequestStore

__all__ = ['RequestStore']
