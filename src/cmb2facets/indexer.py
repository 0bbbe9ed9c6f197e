"""
Facet indexing of metabox fields.

The facet indexer calls `IndexingDispatcher.handle()` once for each item and
each facet. If the facet's source key is in the `cmb2` namespace and names a
registered field, the dispatcher decides how that field is indexed, sends
zero or more rows to its sink, and returns `Outcome.HANDLED`. Otherwise it
returns `Outcome.NOT_MATCHED`, and the caller falls back to its own handling.

```python
from cmb2facets.indexer import IndexingDispatcher, RowCollector
from cmb2facets.policy import IndexParams

sink = RowCollector()
dispatcher = IndexingDispatcher(registry=registry, sink=sink)
dispatcher.handle('cmb2/book_details/genre', IndexParams(
    defaults={'post_id': 42, 'facet_name': 'genre'},
    meta={'genre': ['Mystery', 'Romance']},
))
# sink.rows == [
#     {'post_id': 42, 'facet_name': 'genre', 'facet_value': 'Mystery', 'facet_display_value': 'Genre'},
#     {'post_id': 42, 'facet_name': 'genre', 'facet_value': 'Romance', 'facet_display_value': 'Genre'},
# ]
```

Fields are checked against these rules, in order. The first rule that
applies decides the outcome.

| Rule      | Applies to                                               | Rows                                         |
|-----------|----------------------------------------------------------|----------------------------------------------|
| structure | types in `skip_types`                                    | none                                         |
| text      | types containing "text", except `text_exceptions`        | none, if `skip_text`                         |
| wysiwyg   | `wysiwyg`                                                | none, if `skip_wysiwyg`                      |
| checkbox  | `checkbox`                                               | the field name, if the stored value is "on"  |
| dates     | `text_date`, `text_date_timestamp`, `text_datetime_*`    | the normalized date                          |
| default   | everything else                                          | one per non-blank value, if `index_default`  |

See `cmb2facets.policy` for how to change the settings used by each rule.
"""

import enum
import logging
from collections.abc import Mapping
from typing import Any, Protocol

from cmb2facets.catalog import NAMESPACE
from cmb2facets.dates import DATE_TYPES, UnsupportedDateValue, normalize_date
from cmb2facets.fields import Field, FieldRegistry
from cmb2facets.policy import IndexingPolicy, IndexParams

logger = logging.getLogger(__name__)

type IndexRow = dict[str, Any]
"""Type alias for a single facet index row."""

CHECKBOX_ON = 'on'
"""Stored value of a checked checkbox."""


class Outcome(enum.Enum):
    HANDLED = 'handled'
    """The field was indexed (possibly with no rows)."""
    NOT_MATCHED = 'not_matched'
    """The source is not a known field; the caller should index it."""
    SKIP = 'skip'
    """The field is not indexed."""

    @property
    def handled(self) -> bool:
        """True if the caller should not run its own indexing."""
        return self is not Outcome.NOT_MATCHED


class IndexSink(Protocol):
    def index_row(self, row: IndexRow) -> None:
        ...


class RowCollector:
    """Index sink that keeps the rows it receives in a list."""

    def __init__(self):
        self.rows: list[IndexRow] = []

    def index_row(self, row: IndexRow) -> None:
        self.rows.append(row)


def as_values(value: Any) -> list[Any]:
    """Coerce a stored value to a list. Lists and tuples are returned as
    lists, mappings become the list of their values, `None` becomes an empty
    list, and anything else becomes a single-item list."""
    match value:
        case None:
            return []
        case list() | tuple():
            return list(value)
        case Mapping():
            return list(value.values())
        case _:
            return [value]


def is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ''


class IndexingDispatcher:
    def __init__(self, registry: FieldRegistry | None, sink: IndexSink, policy: IndexingPolicy = IndexingPolicy()):
        self.registry = registry
        self.sink = sink
        self.policy = policy

    def resolve(self, source: str, params: IndexParams) -> Field | None:
        """Find the field named by `source`, bound to the stored values in
        `params`. Returns `None` if the source is not in the `cmb2` namespace,
        is malformed, or does not name a registered field."""
        segments = source.split('/')
        if len(segments) < 3 or segments[0] != NAMESPACE:
            return None
        if self.registry is None:
            return None

        container_id, field_id = segments[1], segments[2]
        container = self.registry.get_container(container_id)
        if container is None:
            logger.debug(f'No container "{container_id}" for source {source}')
            return None
        field_def = container.get_field(field_id)
        if field_def is None:
            logger.debug(f'No field "{field_id}" in container "{container_id}" for source {source}')
            return None

        return field_def.bind(params.meta)

    def handle(self, source: str, params: IndexParams) -> Outcome:
        """Index the field named by `source` for one item. Returns
        `Outcome.NOT_MATCHED` if `source` does not name a registered field,
        and `Outcome.HANDLED` otherwise, even if no rows were indexed."""
        if self.policy.log_params:
            logger.info(f'Indexing {source} with facet={params.facet} defaults={params.defaults}')

        field = self.resolve(source, params)
        if field is None:
            return Outcome.NOT_MATCHED

        outcome = self.decide(field, params)
        logger.debug(f'Field "{field.id}" ({field.type}): {outcome.value}')
        return Outcome.HANDLED

    def decide(self, field: Field, params: IndexParams) -> Outcome:
        """Apply the indexing rules to `field`, sending any rows to the sink.
        Returns `Outcome.SKIP` if the field was deliberately left unindexed,
        and `Outcome.HANDLED` otherwise."""
        field_type = field.type
        policy = self.policy

        if field_type in policy.get_skip_types(field, params):
            return Outcome.SKIP

        if (
            'text' in field_type
            and field_type not in policy.get_text_exceptions(field, params)
            and policy.get_skip_text(field, params)
        ):
            return Outcome.SKIP

        if field_type == 'wysiwyg' and policy.get_skip_wysiwyg(field, params):
            return Outcome.SKIP

        if field_type == 'checkbox':
            if field.raw_value() != CHECKBOX_ON:
                return Outcome.SKIP
            self.index(params, field.name, field.description or field.name)
            return Outcome.HANDLED

        if field_type in DATE_TYPES:
            try:
                value = normalize_date(
                    field_type,
                    field.raw_value(),
                    date_format=field.definition.date_format,
                    tz=policy.timezone,
                )
            except UnsupportedDateValue as e:
                logger.warning(f'Cannot index "{e.value}" in field {field.id} as a date: {e.reason}')
                return Outcome.HANDLED
            self.index(params, value, field.name)
            return Outcome.HANDLED

        if not policy.get_index_default(field, params):
            return Outcome.SKIP

        for value in as_values(field.escaped_value()):
            self.index(params, value, field.name)
        return Outcome.HANDLED

    def index(self, params: IndexParams, value: Any, display_value: Any) -> bool:
        """Send one row to the sink, unless `value` is blank. Values given in
        `params.defaults` are used for keys the row does not set."""
        if is_blank(value):
            return False
        self.sink.index_row({
            **params.defaults,
            'facet_value': str(value),
            'facet_display_value': str(display_value),
        })
        return True
