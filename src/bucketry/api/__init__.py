"""Bucketry HTTP access layer for the local backend."""
