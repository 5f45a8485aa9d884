"""
Mantrify API Module

Provides the FastAPI application.
"""

from src.api.server import app, create_app

__all__ = ['app', 'create_app']
