"""
liftlog: local-first workout sessions, daily AI quotas, and legacy log
migration over a document store.
"""

__version__ = "0.1.0"
