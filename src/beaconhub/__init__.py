"""
BeaconHub - Users and receipts API behind an API-key gate

Apache License 2.0
"""

__version__ = "1.0.0"

__all__ = [
    "__version__",
    "get_app",
]


def get_app():
    """
    Get a FastAPI app built from environment settings.

    Run with: uvicorn --factory beaconhub:get_app
    """
    from .app import create_app
    return create_app()
