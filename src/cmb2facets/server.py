"""Command line entry point for the cmb2-facets service, registered as the
*cmb2facets* script. The application (see `cmb2facets.web`) is served by
the [Waitress](https://docs.pylonsproject.org/projects/waitress/) WSGI
server.

```
$ cmb2facets -h
Usage: cmb2facets [OPTIONS]

Options:
  --fields-file FILE       YAML or JSON file with the metabox definitions.
  --settings-file FILE     YAML or JSON file with the catalog and indexing
                           settings.
  --list-sources           Print the facet sources and exit without starting
                           the server.
  --listen [ADDRESS]:PORT  Address and port to listen on. Default is
                           "0.0.0.0:5000".
  --threads NUMBER         Number of threads used to process requests. Default
                           is 8.
  -V, --version            Show the version and exit.
  -h, --help               Show this message and exit.
```

`--list-sources` is a quick way to check a fields file: it loads the same
configuration the server would, and prints one tab-separated
`source key, label` line per field offered as a facet source.

## Environment

| Env Variable                   | Option            |
|--------------------------------|-------------------|
| **`CMB2FACETS_FIELDS_FILE`**   | `--fields-file`   |
| **`CMB2FACETS_SETTINGS_FILE`** | `--settings-file` |
| **`WAITRESS_LISTEN`**          | `--listen`        |
| **`WAITRESS_THREADS`**         | `--threads`       |

Variables in a `.env` file in the working directory are added to the
environment before the application is created.

---
"""

import logging

import click
from dotenv import load_dotenv
from waitress import serve

from cmb2facets import __version__
from cmb2facets.catalog import NAMESPACE, facet_sources
from cmb2facets.errors import ConfigurationError
from cmb2facets.web import create_app

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def file_config(fields_file: str | None, settings_file: str | None) -> dict[str, str]:
    config = {}
    if fields_file:
        config['FIELDS_FILE'] = fields_file
    if settings_file:
        config['SETTINGS_FILE'] = settings_file
    return config


@click.command()
@click.option(
    '--fields-file',
    help='YAML or JSON file with the metabox definitions.',
    metavar='FILE',
    envvar='CMB2FACETS_FIELDS_FILE',
)
@click.option(
    '--settings-file',
    help='YAML or JSON file with the catalog and indexing settings.',
    metavar='FILE',
    envvar='CMB2FACETS_SETTINGS_FILE',
)
@click.option(
    '--list-sources',
    is_flag=True,
    help='Print the facet sources and exit without starting the server.',
)
@click.option(
    '--listen',
    default='0.0.0.0:5000',
    help='Address and port to listen on. Default is "0.0.0.0:5000".',
    metavar='[ADDRESS]:PORT',
    envvar='WAITRESS_LISTEN',
)
@click.option(
    '--threads',
    type=int,
    default=8,
    help='Number of threads used to process requests. Default is 8.',
    metavar='NUMBER',
    envvar='WAITRESS_THREADS',
)
@click.version_option(__version__, '--version', '-V')
@click.help_option('--help', '-h')
def run(fields_file: str | None, settings_file: str | None, list_sources: bool, listen: str, threads: int):
    load_dotenv()
    if threads < 1:
        logger.error('Exiting: number of threads must be greater than 0')
        raise SystemExit(1)

    try:
        app = create_app(file_config(fields_file, settings_file))
    except ConfigurationError as e:
        logger.error(f'Configuration error: {e}')
        raise SystemExit(1) from e

    if list_sources:
        sources = facet_sources({}, app.config['registry'], app.config['catalog_settings'])
        for key, label in sources[NAMESPACE]['choices'].items():
            click.echo(f'{key}\t{label}')
        return

    server_identity = f'cmb2facets/{__version__}'
    logger.info(f'Starting {server_identity} with {len(app.config["registry"].containers)} container(s)')
    logger.info(f'Worker threads: {threads}')
    try:
        serve(app=app, listen=listen, ident=server_identity, threads=threads)
    except (OSError, RuntimeError, ValueError) as e:
        logger.error(f'Exiting: {e}')
        raise SystemExit(1) from e
