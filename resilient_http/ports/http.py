"""HTTP port definition (DTO)."""

from dataclasses import dataclass, field
from typing import Any

__all__ = ["HttpPort"]


@dataclass
class HttpPort:
    """HTTP request to be performed by the client.

    Decouples call-shape handling from the transport implementation.

    Attributes:
        url: Target HTTP endpoint URL.
        method: HTTP method name.
        payload: Optional JSON-serializable request body.
        headers: Extra request headers.
    """

    url: str
    method: str = "GET"
    payload: Any = None
    headers: dict[str, str] = field(default_factory=dict)
