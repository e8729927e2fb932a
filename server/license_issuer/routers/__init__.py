"""API routers for the license issuer."""

from license_issuer.routers import license  # noqa: F401
