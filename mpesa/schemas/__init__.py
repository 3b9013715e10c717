"""Pydantic Schemas — gateway request payloads and decoded responses.

Invariants:
    - Payload models serialize with the provider's PascalCase field names (by_alias)
    - Response models accept the provider's field names and ignore unknown keys

Design Decisions:
    - Input checks live in core/validation.py, not in the models: a bad field must
      surface as the client's ValidationError, never as a pydantic error
"""
