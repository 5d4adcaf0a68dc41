"""
URL canonicalization and same-host scope enforcement.
Every URL that reaches the frontier has been through UrlNormalizer.
"""

from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

DEFAULT_PORTS = {"http": 80, "https": 443}


def remove_dot_segments(path: str) -> str:
    """RFC 3986 section 5.2.4 dot-segment removal."""
    if not path or ("." not in path):
        return path
    output = []
    segments = path.split("/")
    for i, segment in enumerate(segments):
        last = i == len(segments) - 1
        if segment == ".":
            if last:
                output.append("")
            continue
        if segment == "..":
            if len(output) > 1 or (output and output[0] != ""):
                output.pop()
            if last:
                output.append("")
            continue
        output.append(segment)
    result = "/".join(output)
    if path.startswith("/") and not result.startswith("/"):
        result = "/" + result
    return result


def effective_port(parts) -> int:
    """Explicit port, else the scheme default, else -1. Raises ValueError on a bad port."""
    port = parts.port
    if port is not None:
        return port
    return DEFAULT_PORTS.get((parts.scheme or "").lower(), -1)


class UrlNormalizer:
    """
    Normalizes URLs and enforces the same-host policy against the crawl root.
    Same host means same scheme, host and effective port.
    """

    def __init__(self, root_url: str):
        self.root_url = root_url
        parts = urlsplit(root_url)
        self._root_scheme = parts.scheme.lower()
        self._root_host = (parts.hostname or "").lower()
        self._root_port = effective_port(parts)

    def normalize(self, url: str) -> str:
        """Lowercase scheme and host, strip the fragment and resolve dot segments. Idempotent."""
        parts = urlsplit(url)
        userinfo, at, hostport = parts.netloc.rpartition("@")
        netloc = userinfo + at + hostport.lower()
        return urlunsplit((parts.scheme.lower(), netloc, remove_dot_segments(parts.path), parts.query, ""))

    def normalize_if_same_host(self, candidate: str) -> Optional[str]:
        """
        Resolve candidate against the root and return its normalized form,
        or None if it is off-host or cannot be parsed.
        """
        if candidate is None:
            return None
        try:
            absolute = urljoin(self.root_url, candidate.strip())
            parts = urlsplit(absolute)
            if not self._is_same_host(parts):
                return None
            return self.normalize(absolute)
        except ValueError:
            return None

    def _is_same_host(self, parts) -> bool:
        if (parts.scheme or "").lower() != self._root_scheme:
            return False
        if (parts.hostname or "").lower() != self._root_host:
            return False
        return effective_port(parts) == self._root_port
