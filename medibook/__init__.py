"""
MediBook

A FastAPI-based doctor appointment booking API with token authentication,
role-based access control, and appointment lifecycle management.
"""

__version__ = "1.0.0"
