"""Bundled adapters and the registry that knows how to build them."""

from connect_runtime.registry import AdapterRegistry


def default_registry() -> AdapterRegistry:
    """Return a fresh registry with every bundled adapter."""
    from adapters.adapter_modbus_tcp.modbus_tcp_adapter import ModbusTcpAdapter
    from adapters.adapter_ti_sensortag.sensortag_adapter import TISensorTagAdapter

    return (
        AdapterRegistry()
        .register(ModbusTcpAdapter.ID, ModbusTcpAdapter)
        .register(TISensorTagAdapter.ID, TISensorTagAdapter)
    )
