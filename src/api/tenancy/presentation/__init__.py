"""Tenancy presentation layer.

Routers live in tenancy.presentation.routes; error rendering in
tenancy.presentation.errors.
"""
