"""
Field registry model.

Metabox definitions are plain data, usually loaded from a YAML or JSON file
(see `cmb2facets.web`). Each entry in the list describes one container:

```yaml
- id: book_details
  hookup: true               # optional, defaults to true
  no_facetwp_index: false    # optional, defaults to false
  fields:
    - id: genre
      name: Genre
      type: select
    - id: published
      name: Publication Date
      type: text_date_timestamp
```

Field definitions are immutable. To read a value, bind a definition to the
stored values of one item with `FieldDef.bind()`; the resulting `Field` reads
fresh from that mapping on every call.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from markupsafe import escape

from cmb2facets.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_DATE_FORMAT = 'm/d/Y'
"""PHP-style date format used by `text_date` fields when none is given."""


@dataclass(frozen=True)
class FieldDef:
    """Definition of one field within a container."""
    id: str
    """Field identifier, unique within its container. Also the meta key the
    field's value is stored under."""
    type: str
    """Field type tag, e.g. "text", "select", "checkbox", or "text_date"."""
    name: str = ''
    """Human-readable field name."""
    description: str = ''
    """Longer description, shown next to the field in the editor."""
    default: Any = None
    """Value returned when nothing is stored for the field."""
    date_format: str = DEFAULT_DATE_FORMAT
    """PHP-style date format of stored `text_date` values."""

    def bind(self, meta: Mapping[str, Any]) -> 'Field':
        return Field(definition=self, meta=meta)


@dataclass(frozen=True)
class Field:
    """A field definition bound to the stored values of a single item."""
    definition: FieldDef
    meta: Mapping[str, Any]

    @property
    def id(self) -> str:
        return self.definition.id

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def description(self) -> str:
        return self.definition.description

    @property
    def type(self) -> str:
        return self.definition.type

    def raw_value(self) -> Any:
        """The stored value, exactly as stored, or the field default."""
        value = self.meta.get(self.definition.id)
        if value is None:
            return self.definition.default
        return value

    def escaped_value(self) -> Any:
        """The stored value with every string HTML-attribute escaped.
        Sequences and mappings keep their shape."""
        return escape_value(self.raw_value())


def escape_value(value: Any) -> Any:
    match value:
        case None:
            return None
        case bool():
            # stored booleans read back as "1" and ""
            return '1' if value else ''
        case str():
            return str(escape(value))
        case Mapping():
            return {k: escape_value(v) for k, v in value.items()}
        case list() | tuple():
            return [escape_value(v) for v in value]
        case _:
            return str(escape(str(value)))


@dataclass(frozen=True)
class Container:
    """A metabox: a named, ordered group of field definitions."""
    id: str
    fields: tuple[FieldDef, ...] = ()
    hookup: bool = True
    """Whether the framework's default wiring is enabled for this container."""
    no_facetwp_index: bool = False
    """Opts every field of this container out of the facet source list."""

    def get_field(self, field_id: str) -> FieldDef | None:
        for field_def in self.fields:
            if field_def.id == field_id:
                return field_def
        return None


@dataclass(frozen=True)
class FieldRegistry:
    """Ordered collection of containers."""
    containers: tuple[Container, ...] = field(default_factory=tuple)

    def get_all_containers(self) -> tuple[Container, ...]:
        return self.containers

    def get_container(self, container_id: str) -> Container | None:
        for container in self.containers:
            if container.id == container_id:
                return container
        return None

    @classmethod
    def from_definitions(cls, definitions: Iterable[Mapping[str, Any]] | None) -> 'FieldRegistry':
        """Build a registry from a list of container definition dictionaries.

        Raises a `ConfigurationError` if a container or field is missing its
        `id`, or a field is missing its `type`."""
        containers = []
        for n, box in enumerate(definitions or []):
            try:
                containers.append(Container(
                    id=str(box['id']),
                    fields=tuple(_field_def(f) for f in box.get('fields', [])),
                    hookup=bool(box.get('hookup', True)),
                    no_facetwp_index=bool(box.get('no_facetwp_index', False)),
                ))
            except KeyError as e:
                raise ConfigurationError(f'Container definition {n} is missing the required key {e}') from e
            except (TypeError, AttributeError) as e:
                raise ConfigurationError(f'Container definition {n} is malformed: {e}') from e

        logger.info(f'Loaded {len(containers)} container(s)')
        return cls(containers=tuple(containers))


def _field_def(definition: Mapping[str, Any]) -> FieldDef:
    return FieldDef(
        id=str(definition['id']),
        type=str(definition['type']),
        name=definition.get('name') or '',
        description=definition.get('description') or definition.get('desc') or '',
        default=definition.get('default'),
        date_format=definition.get('date_format') or DEFAULT_DATE_FORMAT,
    )
