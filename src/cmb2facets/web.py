"""cmb2-facets web application.

This web application is built using the [Flask](https://flask.palletsprojects.com/)
framework. It lets a facet indexer that runs outside this process list the
available field sources and index field values over HTTP.

## Endpoints

* **`GET /sources`** The data source choices, as returned by
  `cmb2facets.catalog.facet_sources()`.
* **`POST /index`** Index one field of one item. The request body is a
  JSON object:

  ```json
  {
    "facet": {"name": "genre", "source": "cmb2/book_details/genre"},
    "defaults": {"post_id": 42, "facet_name": "genre"},
    "meta": {"genre": ["Mystery", "Romance"]}
  }
  ```

  The response holds the outcome and the rows to index:

  ```json
  {
    "outcome": "handled",
    "handled": true,
    "rows": [
      {"post_id": 42, "facet_name": "genre", "facet_value": "Mystery", "facet_display_value": "Genre"},
      {"post_id": 42, "facet_name": "genre", "facet_value": "Romance", "facet_display_value": "Genre"}
    ]
  }
  ```

## Configuration

Configuration of the application is handled by a combination of
[environment variables](#environment) and [configuration files](#files).

### Environment

* **`CMB2FACETS_FIELDS_FILE`** Name of the file holding the metabox
  definitions.
* **`CMB2FACETS_SETTINGS_FILE`** Name of the file holding the catalog and
  indexing settings.

During development, it is also useful to set `FLASK_DEBUG=1` to enable
Flask's debug mode, which includes detailed error pages and hot reloading
when the source code is updated.

### Files

Files may be in YAML or JSON format, with the suffixes ".yml"/".yaml" or
".json", respectively. See the `load_config_from_files()` function for more
details.

* **Fields file (`CMB2FACETS_FIELDS_FILE`)** List of container definitions.
  See `cmb2facets.fields` for the format.

* **Settings file (`CMB2FACETS_SETTINGS_FILE`)** Dictionary with two optional
  sections: `catalog` (see `cmb2facets.catalog.CatalogSettings`) and
  `indexing` (see `cmb2facets.policy.IndexingPolicy`).

---
"""

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from time import strftime
from typing import Any, MutableMapping

import yaml
from flask import Flask, request
from plastron.utils import envsubst

from cmb2facets import __version__
from cmb2facets.catalog import CatalogSettings, facet_sources
from cmb2facets.errors import (
    ConfigurationError,
    InvalidIndexRequest,
    NoSourceRequested,
    ProblemDetailError,
    problem_detail_response,
)
from cmb2facets.fields import FieldRegistry
from cmb2facets.indexer import IndexingDispatcher, RowCollector
from cmb2facets.policy import IndexingPolicy, IndexParams

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


LOADERS = {
    '.json': json.load,
    '.yml': yaml.safe_load,
    '.yaml': yaml.safe_load,
}


def load_config_from_files(config: MutableMapping):
    """Iterates over the keys in `config`. For any with the format "{NAME}_FILE",
    treat its value as a filename. Reads that file using the appropriate loader
    (".json" files use `json.load`, and ".yml" and ".yaml" files use `yaml.safe_load`)
    and set the config key "{NAME}" to the return value of the loader.

    After loading, uses `plastron.utils.envsubst` to fill in `${NAME}` placeholders from
    the keys currently defined in the config; in particular, this means you
    can use the values of environment variables with the prefix "CMB2FACETS_".
    In the file, use the name without the "CMB2FACETS_" prefix.

    ```zsh
    # environment
    CMB2FACETS_SITE_TIMEZONE=America/New_York
    CMB2FACETS_SETTINGS_FILE=settings.yml
    ```

    ```yaml
    # settings.yml
    indexing:
      timezone: ${SITE_TIMEZONE}
    ```

    Ignores a "{NAME}_FILE" key if "{NAME}" is already defined in config (i.e.,
    "{NAME}" takes precedence over "{NAME}_FILE").

    Raises a `ConfigurationError` if the file suffix is unrecognized, or if
    the file cannot be opened."""
    file_keys = [k for k in config.keys() if k.endswith('_FILE')]
    for file_key in file_keys:
        # strip the "_FILE" suffix
        key = file_key[:-5]
        if key not in config:
            # only load from file if there isn't already a config value with this key
            file = Path(config[file_key])
            try:
                loader = LOADERS[file.suffix]
            except KeyError as e:
                raise ConfigurationError(f'Cannot open a config file with suffix "{file.suffix}"') from e
            try:
                with file.open() as fh:
                    config[key] = envsubst(loader(fh), config)
            except FileNotFoundError as e:
                raise ConfigurationError(f'Config file "{file}" not found') from e


def get_mapping(body: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = body.get(key) or {}
    if not isinstance(value, Mapping):
        raise InvalidIndexRequest(reason=f'"{key}" must be an object')
    return value


def create_app(config: Mapping[str, Any] | None = None):
    """Create the Flask application. Values in `config` override those taken
    from the "CMB2FACETS_"-prefixed environment variables, and are applied
    before any "{NAME}_FILE" keys are loaded."""
    app = Flask(__name__)
    app.config.from_prefixed_env('CMB2FACETS')
    app.config.update(config or {})
    load_config_from_files(app.config)

    settings = app.config.get('SETTINGS') or {}
    app.config['registry'] = FieldRegistry.from_definitions(app.config.get('FIELDS'))
    app.config['catalog_settings'] = CatalogSettings.from_settings(settings.get('catalog'))
    app.config['indexing_policy'] = IndexingPolicy.from_settings(settings.get('indexing'))

    # Source: https://gist.github.com/alexaleluia12/e40f1dfa4ce598c2e958611f67d28966
    @app.after_request
    def after_request(response):
        timestamp = strftime('[%Y-%m-%d %H:%M]')
        logger.info('%s %s %s %s %s', timestamp, request.method, request.scheme, request.full_path, response.status)
        return response

    @app.route('/')
    def root():
        return f'''
        <html>
          <head>
            <title>cmb2-facets</title>
          </head>
          <body>
            <h1>cmb2-facets</h1>
            <p><a href="/sources">Facet sources</a></p>
            <hr/>
            <p id="version">{__version__}</p>
          </body>
        </html>
        '''

    @app.route('/health')
    def get_health():
        return {'status': 'ok'}

    @app.route('/sources')
    def get_sources():
        return facet_sources({}, app.config['registry'], app.config['catalog_settings'])

    @app.route('/index', methods=['POST'])
    def post_index():
        body = request.get_json(silent=True)
        if body is None:
            raise InvalidIndexRequest(reason='no JSON body was sent')
        if not isinstance(body, Mapping):
            raise InvalidIndexRequest(reason='the body is not an object')

        facet = get_mapping(body, 'facet')
        source = facet.get('source')
        if not source:
            raise NoSourceRequested()

        params = IndexParams(
            facet=facet,
            defaults=get_mapping(body, 'defaults'),
            meta=get_mapping(body, 'meta'),
        )
        sink = RowCollector()
        dispatcher = IndexingDispatcher(
            registry=app.config['registry'],
            sink=sink,
            policy=app.config['indexing_policy'],
        )
        outcome = dispatcher.handle(str(source), params)
        logger.info(f'Indexed {len(sink.rows)} row(s) from {source}: {outcome.value}')

        return {
            'outcome': outcome.value,
            'handled': outcome.handled,
            'rows': sink.rows,
        }

    # serve error responses using the RFC 9457 Problem Detail JSON format
    app.register_error_handler(ProblemDetailError, problem_detail_response)

    return app
