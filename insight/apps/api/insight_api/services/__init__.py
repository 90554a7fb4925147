"""Read-side services built on the tenant gateway."""
