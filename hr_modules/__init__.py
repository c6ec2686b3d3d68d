"""
HR Modules.

Orchestration layers over the HR kernel and engines.
Each module contains:
- Domain models (the nouns)
- Workflows (state machines)
- Configuration schemas (policy and settings)
- ORM persistence models
- A service facade that owns the transaction boundary

Modules are thin: pure computation lives in ``hr_engines``.
"""
