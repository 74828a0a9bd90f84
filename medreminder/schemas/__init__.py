"""Pydantic request, response and wire schemas."""
