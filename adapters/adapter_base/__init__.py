"""Adapter base classes."""

from adapters.adapter_base.base_adapter import BaseAdapter, PullAdapter, StreamAdapter

__all__ = ["BaseAdapter", "PullAdapter", "StreamAdapter"]
