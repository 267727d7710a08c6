"""Counter/blocklist store adapters.

The admission decider depends on the abstract store only, so the shared Redis
backend and the per-process in-memory backend are interchangeable.
"""
