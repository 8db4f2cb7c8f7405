"""
Feature wiring.

Responsibilities:
- Declare each feature's strategies, weights, limits, cache TTL and failure code.
- Resolve customers and products before ranking and enrich the request context.
- Build the candidate sources each feature runs.
"""
