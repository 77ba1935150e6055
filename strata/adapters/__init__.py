"""Adapters package - boundary between transports and the coordination core.

Contains the inbound event types, the event bus, the permission queue and
the outbound collaborator interfaces.
"""
from __future__ import annotations
