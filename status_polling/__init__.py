"""Asynchronous status-polling engine.

Client-side scheduler that repeatedly probes long-running backend jobs
(avatar training, AI-avatar generation, look generation) through their
status-check endpoints, deduplicating overlapping probes, backing off on
failures and tearing down cleanly when a session ends.
"""

__version__ = "0.1.0"
