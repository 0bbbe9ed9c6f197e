import pytest

from cmb2facets.errors import ConfigurationError
from cmb2facets.policy import IndexingPolicy
from cmb2facets.web import create_app, load_config_from_files


def test_load_config_from_files(datadir):
    config = {
        'SETTINGS_FILE': datadir / 'settings.json'
    }
    load_config_from_files(config)
    assert 'SETTINGS' in config
    assert config == {
        'SETTINGS_FILE': datadir / 'settings.json',
        'SETTINGS': {'indexing': {'skip_text': False}},
    }


def test_load_config_from_files_existing_key_wins(datadir):
    config = {
        'SETTINGS_FILE': datadir / 'settings.json',
        'SETTINGS': {},
    }
    load_config_from_files(config)
    assert config['SETTINGS'] == {}


def test_load_config_from_files_unknown_extension(datadir):
    config = {
        'SETTINGS_FILE': datadir / 'settings.bad_extension'
    }
    with pytest.raises(ConfigurationError):
        load_config_from_files(config)


def test_load_config_from_files_file_not_found(datadir):
    config = {
        'SETTINGS_FILE': datadir / 'no_file.yml'
    }
    with pytest.raises(ConfigurationError):
        load_config_from_files(config)


def test_load_config_from_files_substitutes_placeholders(datadir):
    config = {
        'SITE_TIMEZONE': 'America/New_York',
        'SKIP_TEXT': 'false',
        'SETTINGS_FILE': datadir / 'placeholders.yml',
    }
    load_config_from_files(config)
    assert config['SETTINGS'] == {
        'indexing': {
            'timezone': 'America/New_York',
            'skip_text': 'false',
            'hooks': {},
        },
    }


def test_substituted_settings_build_policy(datadir):
    config = {
        'SITE_TIMEZONE': 'Europe/Berlin',
        'SKIP_TEXT': 'false',
        'SETTINGS_FILE': datadir / 'placeholders.yml',
    }
    load_config_from_files(config)
    policy = IndexingPolicy.from_settings(config['SETTINGS']['indexing'])
    assert policy.timezone == 'Europe/Berlin'
    assert policy.skip_text is False


def test_config_from_environment(app):
    assert app.config['indexing_policy'].timezone == 'America/New_York'
    assert app.config['indexing_policy'].log_params
    assert not app.config['catalog_settings'].include_unhooked
    assert app.config['registry'].get_container('book_details') is not None


def test_malformed_fields_file(monkeypatch, datadir):
    monkeypatch.setenv('CMB2FACETS_FIELDS_FILE', str(datadir / 'broken_fields.yml'))
    with pytest.raises(ConfigurationError):
        create_app()


def test_app_without_fields(monkeypatch, app):
    monkeypatch.delenv('CMB2FACETS_FIELDS_FILE')
    monkeypatch.delenv('CMB2FACETS_SETTINGS_FILE')
    empty_client = create_app().test_client()
    response = empty_client.get('/sources')
    assert response.json == {'cmb2': {'label': 'CMB2', 'choices': {}}}


def test_home_page(client):
    response = client.get('/')
    assert response.status_code == 200
    assert response.mimetype == 'text/html'
    assert '<h1>cmb2-facets</h1>' in response.text


def test_health_check(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.is_json
    assert response.json == {'status': 'ok'}


def test_sources(client):
    response = client.get('/sources')
    assert response.status_code == 200
    assert response.json == {
        'cmb2': {
            'label': 'CMB2',
            'choices': {
                'cmb2/book_details/genre': 'Genre',
                'cmb2/book_details/subtitle': 'Subtitle',
                'cmb2/book_details/in_print': 'In Print',
                'cmb2/book_details/published': 'Publication Date',
                'cmb2/book_details/chapters': 'chapters',
            },
        },
    }


def test_index_multiple_values(client):
    response = client.post('/index', json={
        'facet': {'name': 'genre', 'source': 'cmb2/book_details/genre'},
        'defaults': {'post_id': 42, 'facet_name': 'genre'},
        'meta': {'genre': ['Mystery', '', 'Romance']},
    })
    assert response.status_code == 200
    assert response.json == {
        'outcome': 'handled',
        'handled': True,
        'rows': [
            {'post_id': 42, 'facet_name': 'genre', 'facet_value': 'Mystery', 'facet_display_value': 'Genre'},
            {'post_id': 42, 'facet_name': 'genre', 'facet_value': 'Romance', 'facet_display_value': 'Genre'},
        ],
    }


def test_index_date_in_configured_timezone(client):
    response = client.post('/index', json={
        'facet': {'source': 'cmb2/book_details/published'},
        'meta': {'published': 1700000000},
    })
    assert response.json['rows'] == [
        {'facet_value': '2023-11-14', 'facet_display_value': 'Publication Date'},
    ]


def test_index_skipped_field(client):
    response = client.post('/index', json={
        'facet': {'source': 'cmb2/book_details/subtitle'},
        'meta': {'subtitle': 'A Novel'},
    })
    assert response.json == {'outcome': 'handled', 'handled': True, 'rows': []}


def test_index_not_matched(client):
    response = client.post('/index', json={
        'facet': {'source': 'acf/field_123'},
        'meta': {},
    })
    assert response.status_code == 200
    assert response.json == {'outcome': 'not_matched', 'handled': False, 'rows': []}


def test_index_logs_params(client, caplog):
    caplog.set_level('INFO')
    client.post('/index', json={'facet': {'source': 'cmb2/book_details/genre'}, 'defaults': {'post_id': 9}})
    assert 'Indexing cmb2/book_details/genre' in caplog.text


def test_index_no_source(client):
    response = client.post('/index', json={'facet': {'name': 'genre'}})
    assert response.status_code == 400
    assert response.content_type == 'application/problem+json'
    detail = response.json
    assert detail['status'] == 400
    assert detail['title'] == 'No source requested'
    assert detail['details'] == 'No facet source was provided as part of this request.'


@pytest.mark.parametrize(
    ('kwargs', 'expected_details'),
    [
        (
            {'data': 'not json', 'content_type': 'text/plain'},
            'The request body must be a JSON object: no JSON body was sent.',
        ),
        (
            {'json': ['cmb2/book_details/genre']},
            'The request body must be a JSON object: the body is not an object.',
        ),
        (
            {'json': {'facet': 'cmb2/book_details/genre'}},
            'The request body must be a JSON object: "facet" must be an object.',
        ),
        (
            {'json': {'facet': {'source': 'cmb2/book_details/genre'}, 'meta': ['Mystery']}},
            'The request body must be a JSON object: "meta" must be an object.',
        ),
    ],
)
def test_index_invalid_request(client, kwargs, expected_details):
    response = client.post('/index', **kwargs)
    assert response.status_code == 400
    assert response.content_type == 'application/problem+json'
    detail = response.json
    assert detail['title'] == 'Invalid index request'
    assert detail['details'] == expected_details


def test_index_requires_post(client):
    response = client.get('/index')
    assert response.status_code == 405
