"""Core Layer — pure domain logic: error taxonomy, domain types, validation.

Invariants:
    - No module in core/ imports from services/, infrastructure/, or schemas/
    - No IO, no async

Design Decisions:
    - Functional core separated from the imperative shell
"""
