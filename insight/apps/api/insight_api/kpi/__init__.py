"""KPI snapshot recomputation and its job queue."""
