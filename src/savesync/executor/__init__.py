"""
Execution helpers.

Provides the managed thread pool used to parallelize file hashing.
"""

from .thread_pool import ManagedThreadPoolExecutor, PoolStats, ThreadPoolConfig, default_worker_count

__all__ = [
    "ManagedThreadPoolExecutor",
    "PoolStats",
    "ThreadPoolConfig",
    "default_worker_count",
]
