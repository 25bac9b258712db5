"""
Integration tests for the inspection router.

These tests run the inbound handler end to end with moto-mocked AWS services
and httpx mock transports standing in for Microsoft Graph and Browser
Rendering.
"""
