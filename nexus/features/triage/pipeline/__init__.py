"""
Triage pipeline package.

Groups the model-backed stages (scoring, enrichment) so they can be
assembled by the pipeline context.
"""
