"""
Store Kernel - request lifecycle and stock allocation for workshop stores.

Layers:
    domain/     pure values, workflow definition, policy, DTOs (no I/O)
    db/         engine, declarative base, column types
    models/     ORM rows: items, item transactions, requests, counters
    services/   the write side: ledger, requests, references, workflow engine
    selectors/  the read side: request listing and lookup
"""

__version__ = "0.1.0"
