"""
Indexing policy configuration.

An `IndexingPolicy` holds the default decisions made by the
`cmb2facets.indexer.IndexingDispatcher`, and one hook for each decision
that lets the host override it field by field.

| Setting           | Default                           | Hook attribute         |
|-------------------|-----------------------------------|------------------------|
| `skip_types`      | `{'title', 'group'}`              | `skip_types_hook`      |
| `skip_text`       | `True`                            | `skip_text_hook`       |
| `text_exceptions` | the four date/time field types    | `text_exceptions_hook` |
| `skip_wysiwyg`    | `True`                            | `skip_wysiwyg_hook`    |
| `index_default`   | `True`                            | `index_default_hook`   |

Each hook is called with the configured value, the bound field, and the
invocation parameters, and returns the value to use:

```python
def index_long_text(skip_text, field, params):
    return False if field.id == 'summary' else skip_text

policy = IndexingPolicy(skip_text_hook=index_long_text)
```

In the settings file, hooks are given either as `"package.module:function"`
strings or as the names of entry points in the `cmb2facets_hooks` group:

```yaml
indexing:
  skip_text: true
  hooks:
    skip_text: mysite.facets:index_long_text
```
"""

import importlib.metadata
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from cmb2facets.config import as_bool, as_timezone
from cmb2facets.dates import DATE_TYPES
from cmb2facets.errors import ConfigurationError
from cmb2facets.fields import Field

logger = logging.getLogger(__name__)

HOOK_GROUP = 'cmb2facets_hooks'
"""Entry point group searched for hooks named in the settings file."""


@dataclass(frozen=True)
class IndexParams:
    """Parameters of a single indexing call."""
    facet: Mapping[str, Any] = field(default_factory=dict)
    """Settings of the facet being indexed; `source` holds the source key."""
    defaults: Mapping[str, Any] = field(default_factory=dict)
    """Default row values supplied by the caller (item id, facet name, ...)."""
    meta: Mapping[str, Any] = field(default_factory=dict)
    """Stored field values of the item being indexed, keyed by field id."""


type Hook[T] = Callable[[T, Field, IndexParams], T]
"""Override point: receives the configured value, the field, and the
invocation parameters, and returns the value to use."""


def passthrough[T](value: T, _field: Field, _params: IndexParams) -> T:
    """The default hook. Returns `value` unchanged."""
    return value


@dataclass(frozen=True)
class IndexingPolicy:
    skip_types: frozenset[str] = frozenset({'title', 'group'})
    """Field types that hold structure rather than data, and are never indexed."""
    skip_text: bool = True
    """Skip text fields, whose values are usually unique to each item."""
    text_exceptions: frozenset[str] = DATE_TYPES
    """Text field types that are not skipped by `skip_text`."""
    skip_wysiwyg: bool = True
    """Skip rich text editor fields."""
    index_default: bool = True
    """Index the values of fields that no other rule applies to."""
    log_params: bool = False
    """Log the parameters of every indexing call."""
    timezone: str = 'UTC'
    """Timezone used to render timestamps."""

    skip_types_hook: Hook[frozenset[str]] = passthrough
    skip_text_hook: Hook[bool] = passthrough
    text_exceptions_hook: Hook[frozenset[str]] = passthrough
    skip_wysiwyg_hook: Hook[bool] = passthrough
    index_default_hook: Hook[bool] = passthrough

    def get_skip_types(self, f: Field, params: IndexParams) -> frozenset[str]:
        return frozenset(self.skip_types_hook(self.skip_types, f, params))

    def get_skip_text(self, f: Field, params: IndexParams) -> bool:
        return bool(self.skip_text_hook(self.skip_text, f, params))

    def get_text_exceptions(self, f: Field, params: IndexParams) -> frozenset[str]:
        return frozenset(self.text_exceptions_hook(self.text_exceptions, f, params))

    def get_skip_wysiwyg(self, f: Field, params: IndexParams) -> bool:
        return bool(self.skip_wysiwyg_hook(self.skip_wysiwyg, f, params))

    def get_index_default(self, f: Field, params: IndexParams) -> bool:
        return bool(self.index_default_hook(self.index_default, f, params))

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any] | None) -> 'IndexingPolicy':
        """Build a policy from the `indexing` section of the settings file.
        Keys that are not present keep their defaults.

        Raises a `ConfigurationError` if a boolean setting cannot be read as
        true or false, if the timezone is unknown, if a hook cannot be loaded,
        or if an unknown hook name is given."""
        settings = settings or {}
        kwargs = {}
        for key in ('skip_types', 'text_exceptions'):
            if key in settings:
                kwargs[key] = frozenset(settings[key] or [])
        for key in ('skip_text', 'skip_wysiwyg', 'index_default', 'log_params'):
            if key in settings:
                kwargs[key] = as_bool(settings[key], key)
        if 'timezone' in settings:
            kwargs['timezone'] = as_timezone(settings['timezone'])

        for name, spec in (settings.get('hooks') or {}).items():
            attr = name + '_hook'
            if attr not in cls.__dataclass_fields__:
                raise ConfigurationError(f'There is no indexing hook named "{name}"')
            kwargs[attr] = load_hook(spec)
            logger.info(f'Using {spec} for the "{name}" hook')

        return cls(**kwargs)


def load_hook(spec: str) -> Hook:
    """Load a hook function from a `"package.module:function"` string, or
    from the entry point with that name in the `cmb2facets_hooks` group."""
    if ':' in spec:
        entry_point = importlib.metadata.EntryPoint(name=spec, value=spec, group=HOOK_GROUP)
    else:
        try:
            entry_point = importlib.metadata.entry_points(group=HOOK_GROUP)[spec]
        except KeyError as e:
            raise ConfigurationError(f'No hook named {e} is registered') from e

    try:
        hook = entry_point.load()
    except (ImportError, AttributeError, ValueError) as e:
        raise ConfigurationError(f'Cannot load hook "{spec}": {e}') from e

    if not callable(hook):
        raise ConfigurationError(f'Hook "{spec}" is not callable')
    return hook
