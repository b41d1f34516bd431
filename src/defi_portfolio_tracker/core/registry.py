"""Protocol adapter registry with auto-registration pattern."""

from typing import Protocol

from defi_portfolio_tracker.core.models import NormalizedPosition, ProtocolMetrics


class ProtocolAdapterInterface(Protocol):
    """
    What ``ProtocolAdapterService`` needs from an adapter instance.

    Attributes
    ----------
    name : str
        Canonical protocol identifier (e.g., 'aave', 'uniswap')

    Methods
    -------
    get_protocol_metrics()
        Fetch protocol-wide aggregate figures
    get_user_positions(user_address)
        Fetch the user's positions on this protocol
    aclose()
        Release the adapter's HTTP resources

    """

    name: str

    async def get_protocol_metrics(self) -> ProtocolMetrics:
        """Fetch protocol-wide aggregate figures."""
        ...

    async def get_user_positions(self, user_address: str) -> list[NormalizedPosition]:
        """
        Fetch the user's positions on this protocol.

        Parameters
        ----------
        user_address : str
            User wallet address

        Returns
        -------
        list[NormalizedPosition]
            Positions in the common shape

        """
        ...

    async def aclose(self) -> None:
        """Release the adapter's HTTP resources."""
        ...


class AdapterRegistry:
    """
    Registry for protocol adapters with auto-registration.

    Adapters register themselves using the @AdapterRegistry.register
    decorator. Lookups accept the canonical name or any alias, in any case.

    """

    _adapters: dict[str, type] = {}
    _aliases: dict[str, str] = {}

    @classmethod
    def register(cls, adapter_class: type) -> type:
        """
        Decorator to register a protocol adapter.

        Parameters
        ----------
        adapter_class : type
            Adapter class to register

        Returns
        -------
        type
            The adapter class (for decorator chaining)

        Examples
        --------
        >>> @AdapterRegistry.register
        ... class CurveAdapter(BaseProtocolAdapter):
        ...     name = "curve"
        ...     aliases = ("curve_fi",)

        """
        name = getattr(adapter_class, "name", "")
        if not name:
            msg = f"Adapter {adapter_class.__name__} must define 'name' attribute"
            raise ValueError(msg)

        cls._adapters[name] = adapter_class
        cls._aliases[name.lower()] = name
        for alias in getattr(adapter_class, "aliases", ()):
            cls._aliases[alias.lower()] = name
        return adapter_class

    @classmethod
    def resolve(cls, label: str) -> str | None:
        """
        Resolve a protocol label to a canonical adapter name.

        Parameters
        ----------
        label : str
            Protocol name or alias in any case (e.g., 'Aave', 'aave_v2')

        Returns
        -------
        str | None
            Canonical name or None if no adapter matches

        """
        return cls._aliases.get(label.strip().lower())

    @classmethod
    def get_adapter(cls, label: str) -> type | None:
        """Get adapter class by protocol name or alias."""
        name = cls.resolve(label)
        return cls._adapters.get(name) if name else None

    @classmethod
    def get_all_adapters(cls) -> list[type]:
        """Get all registered adapter classes."""
        return list(cls._adapters.values())

    @classmethod
    def clear(cls) -> None:
        """Clear all registered adapters (useful for testing)."""
        cls._adapters.clear()
        cls._aliases.clear()

    @classmethod
    def list_protocols(cls) -> list[str]:
        """
        Get list of all registered protocol names.

        Returns
        -------
        list[str]
            List of canonical protocol identifiers

        """
        return list(cls._adapters.keys())
