"""The interface every node infrastructure provider implements."""

from __future__ import annotations

import abc
from dataclasses import dataclass

from ..nodes import Node


@dataclass(frozen=True)
class ProviderInfo:
    """Capabilities of the container runtime behind a provider."""

    rootless: bool = False
    cgroup2: bool = False
    supports_memory_limit: bool = False
    supports_pids_limit: bool = False
    supports_cpu_shares: bool = False


class Provider(abc.ABC):
    """A provider of cluster node infrastructure."""

    @abc.abstractmethod
    def list_clusters(self) -> list[str]:
        """Return the clusters that currently have resources."""

    @abc.abstractmethod
    def list_nodes(self, cluster: str) -> list[Node]:
        """Return the nodes of ``cluster``, running or not."""

    @abc.abstractmethod
    def delete_nodes(self, nodes: list[Node]) -> None:
        """Delete nodes previously returned by this provider."""

    @abc.abstractmethod
    def get_api_server_endpoint(self, cluster: str) -> str:
        """Return the host endpoint of the cluster's API server."""

    @abc.abstractmethod
    def get_api_server_internal_endpoint(self, cluster: str) -> str:
        """Return the in-network endpoint of the cluster's API server."""

    @abc.abstractmethod
    def info(self) -> ProviderInfo:
        """Return information about the provider's runtime."""