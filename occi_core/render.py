"""
Rendering of entities and categories.

The core is agnostic to output format; this module turns an entity's
effective schema and values, or catalogue entries, into:
- text: OCCI text/plain style header lines
- json: indented JSON
- yaml: block-style YAML

Example:
    >>> print(render_entity(entity, "text"))
    Category: network; scheme="http://schemas.ogf.org/occi/infrastructure#"; class="kind"
    X-OCCI-Attribute: occi.network.state="active"
    Link: </network/...?action=up>; rel="http://schemas.ogf.org/occi/infrastructure/network/action#up"
"""

from __future__ import annotations

import json
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Union

import yaml

from .category.resolve import ancestors, merge_schema
from .category.types import Action, Category, Kind, Mixin

if TYPE_CHECKING:
    from .backend.base import EntityHandle
    from .category.registry import CategoryRegistry
    from .entity.resource import Entity


class OutputFormat(str, Enum):
    """Supported rendering formats."""

    TEXT = "text"
    JSON = "json"
    YAML = "yaml"


def entity_to_dict(entity: Entity) -> Dict[str, Any]:
    """Structured view of an entity, including its schema."""
    result = entity.to_dict()
    result["schema"] = {name: a.to_dict() for name, a in entity.schema.attributes.items()}
    return result


def category_to_dict(category: Category, registry: Optional[CategoryRegistry] = None) -> Dict[str, Any]:
    """Structured view of a category.

    Kinds also list their effective attributes and actions, including
    everything inherited along the `related` chain.
    """
    result = category.to_dict()
    if isinstance(category, Kind):
        chain = ancestors(category, registry)
        schema = merge_schema(chain, registry)
        result["ancestors"] = [k.identity for k in chain[1:]]
        result["effective_attributes"] = [a.to_dict() for a in schema.attributes.values()]
        result["effective_actions"] = list(schema.actions)
    return result


def render_entity(entity: Entity, fmt: Union[OutputFormat, str] = OutputFormat.TEXT) -> str:
    fmt = OutputFormat(fmt)
    if fmt is OutputFormat.TEXT:
        return "\n".join(_entity_text_lines(entity))
    return _dump(entity_to_dict(entity), fmt)


def render_category(
    category: Category,
    fmt: Union[OutputFormat, str] = OutputFormat.TEXT,
    registry: Optional[CategoryRegistry] = None,
) -> str:
    fmt = OutputFormat(fmt)
    if fmt is OutputFormat.TEXT:
        lines = [_category_line(category)]
        data = category_to_dict(category, registry)
        for attr in data.get("effective_attributes", data.get("attributes", [])):
            lines.append(f"  {_attribute_summary(attr)}")
        for action in data.get("effective_actions", data.get("actions", [])):
            lines.append(f"  action {action}")
        return "\n".join(lines)
    return _dump(category_to_dict(category, registry), fmt)


def render_categories(
    categories: Iterable[Category],
    fmt: Union[OutputFormat, str] = OutputFormat.TEXT,
) -> str:
    fmt = OutputFormat(fmt)
    if fmt is OutputFormat.TEXT:
        return "\n".join(_category_line(c) for c in categories)
    return _dump([c.to_dict() for c in categories], fmt)


def render_handles(
    handles: Iterable[EntityHandle],
    fmt: Union[OutputFormat, str] = OutputFormat.TEXT,
) -> str:
    fmt = OutputFormat(fmt)
    if fmt is OutputFormat.TEXT:
        return "\n".join(f"X-OCCI-Location: {h.location}" for h in handles)
    return _dump([h.to_dict() for h in handles], fmt)


def _entity_text_lines(entity: Entity) -> List[str]:
    lines = [_category_line(entity.kind)]
    lines.extend(_category_line(m) for m in entity.mixins)
    for name, value in entity.to_dict()["attributes"].items():
        lines.append(f"X-OCCI-Attribute: {name}={_text_value(value)}")
    location = f"/{entity.kind.term}/{entity.id}"
    for identity, action in entity.applicable_actions().items():
        lines.append(f'Link: <{location}?action={action.term}>; rel="{identity}"')
    return lines


def _category_line(category: Category) -> str:
    line = f'Category: {category.term}; scheme="{category.scheme}"; class="{category.category_type}"'
    if category.title:
        line += f'; title="{category.title}"'
    if isinstance(category, Kind) and category.related_id:
        line += f'; rel="{category.related_id}"'
    if isinstance(category, (Kind, Mixin, Action)):
        names = " ".join(sorted(a.name for a in category.attributes))
        if names:
            line += f'; attributes="{names}"'
    return line


def _attribute_summary(attr: Dict[str, Any]) -> str:
    flags = []
    if attr.get("required"):
        flags.append("required")
    if attr.get("mutable") is False:
        flags.append("immutable")
    if attr.get("unique"):
        flags.append("unique")
    summary = f"{attr['name']} ({attr['type']})"
    if flags:
        summary += f" [{', '.join(flags)}]"
    return summary


def _text_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return json.dumps(value)
    return str(value)


def _dump(data: Any, fmt: OutputFormat) -> str:
    if fmt is OutputFormat.YAML:
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    return json.dumps(data, indent=2)
