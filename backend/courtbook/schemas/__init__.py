"""Pydantic request/response schemas for the Courtbook API."""
