"""HTTP surface for portfolio snapshots."""

from defi_portfolio_tracker.api.app import create_app

__all__ = ["create_app"]
