"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .redis_client import close_redis, create_redis, redis_status
from .tiqr_client import TiqrClient

__all__ = ['TiqrClient', 'create_redis', 'close_redis', 'redis_status']
