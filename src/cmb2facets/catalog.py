"""
Field catalog.

Lists the registered fields that can be picked as a facet data source. The
result feeds the data source dropdown in the facet settings screen, where
each choice is keyed by a source key of the form
`cmb2/{container_id}/{field_id}`:

```python
from cmb2facets.catalog import facet_sources

sources = facet_sources({}, registry)
# {'cmb2': {'label': 'CMB2', 'choices': {'cmb2/book_details/genre': 'Genre'}}}
```

A container is left out when it sets `no_facetwp_index`, or when its
`hookup` is turned off (unless `CatalogSettings.include_unhooked` is set).
Fields whose type is in `CatalogSettings.skip_field_types` (by default, just
"hidden") are left out as well.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from cmb2facets.config import as_bool
from cmb2facets.fields import Container, FieldRegistry

logger = logging.getLogger(__name__)

NAMESPACE = 'cmb2'
"""First segment of every source key produced by this package."""

SOURCE_LABEL = 'CMB2'
"""Label of the source group in the data source dropdown."""


def source_key(container_id: str, field_id: str) -> str:
    return f'{NAMESPACE}/{container_id}/{field_id}'


@dataclass(frozen=True)
class CatalogSettings:
    include_unhooked: bool = False
    """List fields of containers that have their hookup turned off."""
    skip_field_types: frozenset[str] = frozenset({'hidden'})
    """Field types never offered as sources."""

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any] | None) -> 'CatalogSettings':
        settings = settings or {}
        kwargs = {}
        if 'include_unhooked' in settings:
            kwargs['include_unhooked'] = as_bool(settings['include_unhooked'], 'include_unhooked')
        if 'skip_field_types' in settings:
            kwargs['skip_field_types'] = frozenset(settings['skip_field_types'] or [])
        return cls(**kwargs)


@dataclass(frozen=True)
class FieldCatalogEntry:
    container_id: str
    field_id: str
    label: str

    @property
    def source_key(self) -> str:
        return source_key(self.container_id, self.field_id)


def is_listed(container: Container, settings: CatalogSettings) -> bool:
    if container.no_facetwp_index:
        logger.debug(f'Container "{container.id}" is opted out of facet indexing')
        return False
    if not container.hookup and not settings.include_unhooked:
        logger.debug(f'Container "{container.id}" has no hookup')
        return False
    return True


def list_fields(registry: FieldRegistry | None, settings: CatalogSettings = CatalogSettings()) -> list[FieldCatalogEntry]:
    """Return a catalog entry for every listable field, in container order
    and then field order. Returns an empty list if there is no registry."""
    if registry is None:
        return []

    entries = []
    for container in registry.get_all_containers():
        if not is_listed(container, settings):
            continue
        for field_def in container.fields:
            if field_def.type in settings.skip_field_types:
                continue
            entries.append(FieldCatalogEntry(
                container_id=container.id,
                field_id=field_def.id,
                label=field_def.name or field_def.id,
            ))
    return entries


def facet_sources(
    sources: Mapping[str, Any],
    registry: FieldRegistry | None,
    settings: CatalogSettings = CatalogSettings(),
) -> dict[str, Any]:
    """Return a copy of `sources` with a "cmb2" group added, mapping each
    listed field's source key to its label."""
    choices = {entry.source_key: entry.label for entry in list_fields(registry, settings)}
    logger.info(f'Listing {len(choices)} field(s) as facet sources')
    return {
        **sources,
        NAMESPACE: {
            'label': SOURCE_LABEL,
            'choices': choices,
        },
    }
