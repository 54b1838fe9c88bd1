"""Core (UI-agnostic) shipment dashboard logic.

This package contains:
- record store adapter (Firestore -> list of dicts) and auth collaborator
- spreadsheet import mapping (XLSX rows -> shipment records)
- filter normalization and bucket aggregation
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict, doughnut/zoom geometry)
"""
