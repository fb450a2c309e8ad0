from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

FILTER_OPERATORS = ("=", "!=", ">", "<", ">=", "<=", "~", "=~", "~=")

MAX_LIMIT = 1000
MAX_EXPAND_LIMIT = 100  # the API caps page size when expand is used
DEFAULT_LIMIT = 25


@dataclass
class FilterCondition:
    field: str
    operator: str
    value: Union[str, int, float, bool]

    def __post_init__(self):
        if self.operator not in FILTER_OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.operator}")

    def render(self) -> str:
        if isinstance(self.value, bool):
            value = "true" if self.value else "false"
        else:
            value = str(self.value)
        return f"{self.field}{self.operator}{value}"


def build_filter(conditions: List[FilterCondition]) -> str:
    """Joins filter conditions into MoySklad's `filter` syntax: `a=1;b>=2`."""
    return ";".join(c.render() for c in conditions)


def build_query_params(
    filter: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    expand: Optional[str] = None,
    search: Optional[str] = None,
    order: Optional[str] = None,
) -> Dict[str, str]:
    params: Dict[str, str] = {}
    if filter:
        params["filter"] = filter
    if limit is not None:
        params["limit"] = str(min(limit, MAX_LIMIT))
    if offset is not None:
        params["offset"] = str(offset)
    if expand:
        params["expand"] = expand
    if search:
        params["search"] = search
    if order:
        params["order"] = order
    return params


def normalize_pagination(limit: Optional[int] = None, offset: Optional[int] = None, has_expand: bool = False) -> Dict[str, int]:
    max_limit = MAX_EXPAND_LIMIT if has_expand else MAX_LIMIT
    return {
        "limit": min(DEFAULT_LIMIT if limit is None else limit, max_limit),
        "offset": 0 if offset is None else offset,
    }


def _value_or(value, default):
    return default if value is None else value


def extract_pagination_meta(meta: Dict[str, Any]) -> Dict[str, Any]:
    size = _value_or(meta.get("size"), 0)
    limit = _value_or(meta.get("limit"), DEFAULT_LIMIT)
    offset = _value_or(meta.get("offset"), 0)
    return {
        "size": size,
        "limit": limit,
        "offset": offset,
        "hasMore": offset + limit < size,
    }


# MoySklad keeps money in kopecks.
def to_rubles(kopecks: Optional[float]) -> Optional[float]:
    if kopecks is None:
        return None
    return kopecks / 100


def to_kopecks(rubles: Optional[float]) -> Optional[int]:
    if rubles is None:
        return None
    return round(rubles * 100)


def entity_meta(href: str, entity_type: str) -> Dict[str, Any]:
    return {
        "meta": {
            "href": href,
            "type": entity_type,
            "mediaType": "application/json",
        }
    }
