import pytest
import yaml

from cmb2facets.fields import Container, FieldDef, FieldRegistry
from cmb2facets.indexer import RowCollector
from cmb2facets.web import create_app


@pytest.fixture
def app(monkeypatch, shared_datadir):
    monkeypatch.setenv('CMB2FACETS_FIELDS_FILE', str(shared_datadir / 'fields.yml'))
    monkeypatch.setenv('CMB2FACETS_SETTINGS_FILE', str(shared_datadir / 'settings.yml'))
    monkeypatch.setenv('CMB2FACETS_SITE_TIMEZONE', 'America/New_York')
    return create_app()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def book_registry(shared_datadir) -> FieldRegistry:
    with (shared_datadir / 'fields.yml').open() as fh:
        return FieldRegistry.from_definitions(yaml.safe_load(fh))


@pytest.fixture
def sink() -> RowCollector:
    return RowCollector()


@pytest.fixture
def registry_with():
    """Build a registry holding a single container named "box", with one
    field named "f" for each given field definition."""
    def _registry_with(field_type: str, **kwargs) -> FieldRegistry:
        kwargs.setdefault('name', 'Field Name')
        return FieldRegistry(containers=(
            Container(id='box', fields=(FieldDef(id='f', type=field_type, **kwargs),)),
        ))
    return _registry_with
