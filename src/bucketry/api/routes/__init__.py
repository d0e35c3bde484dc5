"""Bucketry API routes."""
