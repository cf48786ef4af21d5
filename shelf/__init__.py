"""Enriched library export: fetching, enrichment phases and report rendering."""
