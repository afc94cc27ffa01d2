"""Core interfaces/abstractions.

Why:
- Defines the contracts (observer callbacks, transport protocol) that the
  adapters and the application layer implement.
- Lets the core depend on abstractions instead of concrete HTTP clients.
"""
