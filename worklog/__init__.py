"""Core (UI-agnostic) work-log KPI logic.

This package contains:
- record model and sheet-row parsing (rows -> WorkRecord -> pandas)
- filter normalization and the record filter engine
- KPI / grouping / bucketing aggregation
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
- the record store client and the user session
"""
