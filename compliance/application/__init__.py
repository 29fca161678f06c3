"""Application layer exports."""

from .dashboard import DashboardService, create_dashboard_service

__all__ = ["DashboardService", "create_dashboard_service"]
