"""Presentation layer: transports that expose the discovery service."""
