"""Ingestion of AI conversation exports and session logs."""
