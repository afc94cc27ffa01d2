"""Domain models and entities.

Why:
- Pure, strict data structures (Pydantic v2) plus the error taxonomy.
- The domain knows nothing about HTTP, the CLI or SDKs.
"""
