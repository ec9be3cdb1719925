"""
Transport implementations for the link resolution service.

Supports:
- HTTP/REST (FastAPI)
"""
