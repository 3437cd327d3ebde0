"""
Schemas module - request/response models for the API (see schemas.py).
"""
