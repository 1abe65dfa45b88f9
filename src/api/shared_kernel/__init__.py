"""Shared Kernel.

Small value types that every package may depend on. At present this is
the ObservationContext carried by all domain probes, so a request's
correlation id reads the same in every log event.
"""
