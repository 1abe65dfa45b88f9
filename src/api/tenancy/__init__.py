"""Tenancy bounded context.

Provisions restaurant tenants together with their dedicated owner identity
and manages that identity's credentials afterwards.
"""
