"""Infrastructure Layer — transport, token cache, admission control, retries.

Invariants:
    - All external calls go through Transport and surface failures as MpesaError
    - Shared mutable state (token cache, quota window) lives on instances, never modules

Design Decisions:
    - Resilience concerns split one per module and composed in request_core.py
"""
