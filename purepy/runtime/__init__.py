"""Runtime support: operator semantics, memo cache and worker pool."""
