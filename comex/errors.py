from __future__ import annotations


class DashboardError(Exception):
    """Base class for failures surfaced to the user as a message."""


class StoreError(DashboardError):
    """The document store could not be read or written."""


class AuthError(DashboardError):
    """Sign-in failed or no user is authenticated."""


class SpreadsheetParseError(DashboardError):
    """An uploaded spreadsheet could not be read or mapped."""
