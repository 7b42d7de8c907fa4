"""
Domain helpers for the proxy: the request pipeline and body normalization.
"""

from .normalizer import normalize
from .pipeline import ProxyPipeline

__all__ = ["normalize", "ProxyPipeline"]
