"""
Upstream host allowlist.
"""

from typing import FrozenSet, Iterable, Optional


class HostAllowlist:
    """Fixed set of upstream hostnames the gateway may forward to."""

    def __init__(self, hosts: Iterable[str]):
        self._hosts: FrozenSet[str] = frozenset(h.strip().lower() for h in hosts if h and h.strip())

    @property
    def hosts(self) -> FrozenSet[str]:
        return self._hosts

    def is_allowed(self, host: Optional[str]) -> bool:
        """Return True only for configured hosts; never raises."""
        if not host or not isinstance(host, str):
            return False
        return host.strip().lower() in self._hosts

    def __contains__(self, host: object) -> bool:
        return isinstance(host, str) and self.is_allowed(host)

    def __len__(self) -> int:
        return len(self._hosts)
