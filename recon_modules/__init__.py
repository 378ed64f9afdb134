"""
Reconciliation Modules.

Thin orchestration layers over the reconciliation kernel and engines.
Each module contains:
- Domain models (the nouns)
- Workflows (state machines)
- Configuration schemas
- ORM persistence and a service that owns the transaction boundary

Modules:
- cycle_count: inventory cycle-count sessions, variance review and posting
"""
