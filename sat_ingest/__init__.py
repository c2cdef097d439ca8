"""Satellite tile ingestion service."""
