"""Bucketry API middleware."""
