"""
tasksync: personal task tracking over a remote live-updating document store.

Packages:
- core: ports (Protocols), errors, app state
- session: identity/session provider
- tasks: task models, live task client, optimistic mutations, view helpers
- backends: in-memory and Firebase REST adapters
- cli / connectors: console shell
"""

__version__ = "0.3.0"
