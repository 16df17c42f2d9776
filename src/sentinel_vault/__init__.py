"""
Sentinel Vault - zero-knowledge style encrypted credential vault.

Core subsystems:
- vault: key derivation, envelope encryption, strength scoring,
  reuse/breach detection, credential CRUD
- auth: registration, login with rate limiting, sessions, password reset
- core: configuration, errors, audit logging, activity ledger
"""

__version__ = "0.3.0"
__author__ = "Sentinel Vault Team"
