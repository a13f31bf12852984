"""FastAPI surface for the booking core."""
from pawbook.api.app import create_app

__all__ = ["create_app"]
