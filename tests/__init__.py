"""
Test suite for the MediBook appointment API.

Contains unit and integration tests for the application's functionality.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}
