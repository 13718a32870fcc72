"""
Utility modules for the Rota Requests service
"""
from .timezone import utcnow, to_naive_utc, to_local_time

__all__ = ['utcnow', 'to_naive_utc', 'to_local_time']
