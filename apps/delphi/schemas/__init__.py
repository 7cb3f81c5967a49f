"""Pydantic schemas for the realtime wire format and HTTP responses."""
