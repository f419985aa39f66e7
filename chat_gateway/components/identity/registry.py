"""
Identity Registry.

Owns the set of currently claimed display names and the device -> name
association used for reconnection. Names are normalized, never rejected:
whatever a client asks for is sanitized and, when taken, suffixed with the
smallest free positive integer.

The registry has no locking of its own; it relies on the ConnectionManager
serializing every lifecycle step.
"""

from __future__ import annotations

import logging
import re
from types import MappingProxyType
from typing import Iterable

from chat_gateway.components.core.constants import RelayConstants
from shared.config.logging import mask_device

logger = logging.getLogger(__name__)

_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_]")


class IdentityRegistry:
    """
    Display name allocation and device association.

    Indices maintained:
    - claimed: set of names unavailable for allocation
    - device_to_name: device token -> last bound name (weak association;
      may outlive the claim, e.g. after grace expiry)
    """

    def __init__(
        self,
        max_length: int = RelayConstants.NAME_MAX_LENGTH,
        default_name: str = RelayConstants.DEFAULT_NAME,
        reserved: Iterable[str] = (),
    ) -> None:
        """
        Initialize an empty registry.

        Args:
            max_length: Maximum display name length after sanitization.
            default_name: Base token used for empty or reserved requests.
            reserved: Names (case-insensitive) that clients may not claim.
        """
        if max_length < 1:
            raise ValueError("max_length must be positive")
        self._max_length = max_length
        self._default_name = self._strip(default_name)[:max_length] or RelayConstants.DEFAULT_NAME
        self._reserved = frozenset(name.lower() for name in reserved)

        self._claimed: set[str] = set()
        self._device_to_name: dict[str, str] = {}

        # Metrics
        self._total_allocations = 0
        self._total_suffixed = 0

    # =========================================================================
    # Views
    # =========================================================================

    @property
    def claimed(self) -> frozenset[str]:
        """Snapshot of the claimed set."""
        return frozenset(self._claimed)

    @property
    def device_bindings(self) -> MappingProxyType[str, str]:
        """Device -> name associations (immutable view)."""
        return MappingProxyType(self._device_to_name)

    @property
    def claimed_count(self) -> int:
        return len(self._claimed)

    # =========================================================================
    # Names
    # =========================================================================

    @staticmethod
    def _strip(raw: str) -> str:
        return _INVALID_NAME_CHARS.sub("", raw)

    def sanitize_name(self, requested: str | None) -> str:
        """
        Normalize a requested name into a valid base name.

        Strips everything except ASCII letters, digits and underscore,
        clamps to max_length, and falls back to the default name when the
        result is empty or reserved.
        """
        base = self._strip(requested or "")[: self._max_length]
        if not base or base.lower() in self._reserved:
            return self._default_name
        return base

    def is_available(self, name: str) -> bool:
        """True iff name is not in the claimed set."""
        return name not in self._claimed

    def allocate(self, requested: str | None) -> str:
        """
        Claim a unique display name derived from the requested one.

        Returns the sanitized name verbatim when available; otherwise the
        base followed by the smallest positive integer suffix that is free.
        The base is shortened when needed so the result never exceeds
        max_length. Terminates because the claimed set is finite.

        Args:
            requested: Raw client-supplied name (may be None or empty).

        Returns:
            The claimed name.
        """
        base = self.sanitize_name(requested)
        name = base
        if name in self._claimed:
            counter = 1
            while True:
                suffix = str(counter)
                name = base[: self._max_length - len(suffix)] + suffix
                if name not in self._claimed:
                    break
                counter += 1
            self._total_suffixed += 1

        self._claimed.add(name)
        self._total_allocations += 1
        logger.debug("Name allocated", name=name, requested_base=base)
        return name

    def claim_exact(self, name: str) -> bool:
        """
        Claim a specific, already-sanitized name if it is free.

        Used for stale reconnects where the remembered name must be reused
        verbatim or not at all.

        Returns:
            True if the name was claimed.
        """
        if name in self._claimed:
            return False
        self._claimed.add(name)
        self._total_allocations += 1
        return True

    def release(self, name: str | None) -> None:
        """Remove name from the claimed set. No-op if absent."""
        if name:
            self._claimed.discard(name)

    # =========================================================================
    # Device association
    # =========================================================================

    def bind_device(self, device: str, name: str) -> None:
        """Associate a device with its current name, replacing any previous one."""
        self._device_to_name[device] = name

    def lookup_device(self, device: str | None) -> str | None:
        """Last name bound to a device, whether or not it is still claimed."""
        if not device:
            return None
        return self._device_to_name.get(device)

    def unbind_device(self, device: str | None) -> None:
        """Forget a device association. No-op if absent."""
        if device and self._device_to_name.pop(device, None) is not None:
            logger.debug("Device unbound", device=mask_device(device))

    def find_device_by_name(self, name: str) -> str | None:
        """Reverse lookup of the device whose last bound name is `name`."""
        for device, bound_name in self._device_to_name.items():
            if bound_name == name:
                return device
        return None

    # =========================================================================
    # Stats
    # =========================================================================

    def get_stats(self) -> dict[str, int]:
        """Get registry statistics."""
        return {
            "claimed_names": len(self._claimed),
            "device_bindings": len(self._device_to_name),
            "total_allocations": self._total_allocations,
            "total_suffixed": self._total_suffixed,
        }
