"""
Scene Engine
Scene-by-scene romance fiction generation with write-once caching and
metadata-safe streaming.
"""

__version__ = "0.1.0"
