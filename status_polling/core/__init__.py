"""Core utilities and shared infrastructure.

- clock: Timer capability (asyncio-backed) used by the schedulers
- config: Configuration loading and validation
- constants: Named constants, polling keys, status vocabularies
- exceptions: Custom exception hierarchy
"""
