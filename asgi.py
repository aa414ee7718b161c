"""
asgi.py -- ASGI entry point for Tourguard.

Run with:  uvicorn asgi:app --reload
"""

from api.main import create_app
from core.config import get_settings

app = create_app(get_settings())

__all__ = ["app"]
