"""HTTP access to the dashboard API."""

from night_shift.http.client import DashboardClient, DashboardRequestError

__all__ = ["DashboardClient", "DashboardRequestError"]
