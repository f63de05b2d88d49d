"""HTTP surface for the best stories pipeline."""

from beststories.api.app import create_app

__all__ = ["create_app"]
