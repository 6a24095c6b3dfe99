"""Delivery core — sink connection manager, lifecycle coordinator, shipper."""
