"""Metadata enrichment — registry lookups, license and source classification.

Submodules are imported directly (``nuscan.engines.enrichment.runner``);
the runner depends on the inventory models, which in turn use the
classification helpers here.
"""
