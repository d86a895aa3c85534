"""
Signal triage feature package.

This vertical slice keeps every layer of the triage and enrichment flow
co-located (domain models, repositories, pipeline stages, services, jobs,
and the API router) so contributors can navigate the feature without
hunting through global folders.
"""
