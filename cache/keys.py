"""
Cache Keys
----------
Deterministic cache keys for upstream requests.

Identical logical requests map to the same key regardless of the order in
which query parameters were supplied. The credential parameter is never
part of a key.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import urlencode

TOKEN_PARAM = "token"

Params = Union[Mapping[str, Any], Iterable[Tuple[str, Any]], None]


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def param_pairs(params: Params) -> List[Tuple[str, str]]:
    """Flatten a mapping or pair sequence into ``(name, value)`` strings.

    List and tuple values in a mapping expand into repeated parameters.
    """
    if params is None:
        return []

    items = params.items() if isinstance(params, Mapping) else params
    pairs: List[Tuple[str, str]] = []
    for name, value in items:
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((str(name), _stringify(v)) for v in value)
        else:
            pairs.append((str(name), _stringify(value)))
    return pairs


def canonicalize_params(params: Params) -> List[Tuple[str, str]]:
    """Stable parameter order for keys: sorted by name, repeated values keep
    their relative order, and the credential is dropped."""
    pairs = [pair for pair in param_pairs(params) if pair[0] != TOKEN_PARAM]
    return sorted(pairs, key=lambda pair: pair[0])


@dataclass(frozen=True)
class RequestDescriptor:
    """One logical upstream request, minus the credential."""
    base_url: str
    params: Tuple[Tuple[str, str], ...] = ()
    method: str = "GET"
    headers: Tuple[Tuple[str, str], ...] = field(default=())

    @classmethod
    def build(
        cls,
        base_url: str,
        params: Params = None,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
    ) -> "RequestDescriptor":
        header_items = sorted(
            (name.lower(), value) for name, value in (headers or {}).items()
        )
        return cls(
            base_url=base_url,
            params=tuple(canonicalize_params(params)),
            method=method.upper(),
            headers=tuple(header_items),
        )

    @property
    def query_string(self) -> str:
        return urlencode(self.params)

    def cache_key(self) -> str:
        """Key shaped like ``api_<METHOD>_<url>_<query>``."""
        key = f"api_{self.method}_{self.base_url}_{self.query_string}"
        if self.headers:
            key += "_" + urlencode(self.headers)
        return key

    def as_dict(self) -> Dict[str, Any]:
        return {
            "base_url": self.base_url,
            "method": self.method,
            "params": self.query_string,
        }


def build_cache_key(
    base_url: str,
    params: Params = None,
    method: str = "GET",
    headers: Optional[Mapping[str, str]] = None,
) -> str:
    """Shortcut for ``RequestDescriptor.build(...).cache_key()``."""
    return RequestDescriptor.build(base_url, params, method, headers).cache_key()
