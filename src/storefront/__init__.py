"""Storefront package for the app marketplace API."""

from .api import app

__all__ = ["app"]
