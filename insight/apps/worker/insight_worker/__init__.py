"""Insight KPI worker: consumes recompute jobs from the Redis queue."""
