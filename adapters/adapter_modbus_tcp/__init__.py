"""Modbus TCP pull adapter."""
