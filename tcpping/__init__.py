"""
tcpping - TCP connect latency probe service.
"""

__version__ = "1.0.0"
