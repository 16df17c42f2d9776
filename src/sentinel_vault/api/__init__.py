# Sentinel Vault - HTTP API (FastAPI)

from .main import create_app

__all__ = ["create_app"]
