"""Expose fields from the CMB2 metabox framework as FacetWP data sources, and
turn their stored values into FacetWP index rows.

* `cmb2facets.fields` models the metabox field registry.
* `cmb2facets.catalog` lists the fields that can be used as facet sources.
* `cmb2facets.indexer` decides how a field's values are indexed.
* `cmb2facets.web` serves both operations over HTTP.
"""

__version__ = '1.0.0'
