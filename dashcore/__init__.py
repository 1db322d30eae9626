"""Dashboard aggregation & resilience layer (UI-agnostic).

This package contains:
- envelope normalization (dual-casing upstream payloads -> canonical records)
- view-model assembly per section kind (stats, charts, activities, table rows)
- fault compartments that keep a failing section from blanking the page
- the retry/poll scheduler and refresh policies
- the lazy chart engine loader (Altair -> Vega-Lite spec dict)
"""
