"""
Proxy caching package.

Provides the TTL store, its on-disk snapshot format and the single-flight
registry used to coalesce concurrent misses.
"""
