"""
Tests for the permission catalog.
"""
import pytest
from django.core.exceptions import ImproperlyConfigured
from apps.rbac.catalog import build_catalog, get_catalog, DEFAULT_MODULES, DEFAULT_ACTIONS


class TestPermissionCatalog:
    """Test catalog construction and lookups."""

    def test_default_catalog_sets(self, catalog):
        assert catalog.modules == DEFAULT_MODULES
        assert catalog.actions == ('view', 'raise', 'review', 'approve', 'close')
        assert set(catalog.roles) == {'Admin', 'Client', 'IH_PMT', 'Contractor', 'Consultant', 'PMC', 'Supplier'}

    def test_ltr_review_and_approve_are_locked(self, catalog):
        assert catalog.is_locked('LTR', 'review')
        assert catalog.is_locked('LTR', 'approve')
        assert not catalog.is_locked('LTR', 'view')
        assert not catalog.is_locked('WIR', 'approve')

    def test_role_api_names(self, catalog):
        assert catalog.role_from_api('IH-PMT') == 'IH_PMT'
        assert catalog.role_from_api('IH_PMT') == 'IH_PMT'
        assert catalog.role_from_api('Contractor') == 'Contractor'
        assert catalog.role_to_api('IH_PMT') == 'IH-PMT'
        assert catalog.role_to_api('PMC') == 'PMC'

    def test_unknown_role_maps_to_none(self, catalog):
        assert catalog.role_from_api('Inspector') is None
        assert catalog.role_from_api('contractor') is None
        assert catalog.role_from_api(None) is None
        assert catalog.role_from_api(42) is None

    def test_role_priority(self, catalog):
        assert catalog.role_priority[0] == 'IH_PMT'
        assert catalog.role_rank('Admin') < catalog.role_rank('Client')
        assert catalog.role_rank('Contractor') < catalog.role_rank('Supplier')
        assert catalog.role_rank('Unknown') == len(catalog.role_priority)

    def test_empty_grid_is_full_and_denied(self, catalog):
        grid = catalog.empty_grid()

        assert set(grid) == set(DEFAULT_MODULES)
        for cells in grid.values():
            assert set(cells) == set(DEFAULT_ACTIONS)
            assert not any(cells.values())

    def test_default_template_never_grants_locked_cells(self, catalog):
        for role in catalog.roles:
            grid = catalog.default_template(role)
            assert grid['LTR']['review'] is False
            assert grid['LTR']['approve'] is False

        assert catalog.default_template('Admin')['WIR']['approve'] is True

    def test_catalog_is_immutable(self, catalog):
        with pytest.raises(AttributeError):
            catalog.modules = ('WIR',)

    def test_catalog_mappings_are_read_only(self, catalog):
        with pytest.raises(TypeError):
            catalog.api_role_names['Client'] = 'CLI'
        with pytest.raises(TypeError):
            catalog.default_templates['Client'] = {}
        with pytest.raises(TypeError):
            catalog.default_templates['Client']['WIR'] = ('view', 'close')

        assert catalog.role_to_api('Client') == 'Client'
        assert catalog.default_template('Client')['WIR']['close'] is False

    def test_catalog_does_not_share_override_dicts(self):
        names = {'IH_PMT': 'IH-PMT'}
        templates = {'Client': {'WIR': ['view']}}
        catalog = build_catalog({'API_ROLE_NAMES': names, 'DEFAULT_TEMPLATES': templates})

        names['IH_PMT'] = 'PMT'
        templates['Client']['WIR'].append('close')

        assert catalog.role_to_api('IH_PMT') == 'IH-PMT'
        assert catalog.default_template('Client')['WIR']['close'] is False


class TestCatalogOverrides:
    """Test building a catalog from PMS_PERMISSIONS overrides."""

    def test_custom_modules_and_priority(self):
        catalog = build_catalog({
            'MODULES': ['WIR', 'LTR'],
            'ROLE_PRIORITY': ['Supplier'],
            'DEFAULT_TEMPLATES': {'Supplier': {'WIR': ['view']}},
        })

        assert catalog.modules == ('WIR', 'LTR')
        assert catalog.role_priority[0] == 'Supplier'
        assert len(catalog.role_priority) == len(catalog.roles)
        assert catalog.default_template('Supplier')['WIR'] == {
            'view': True, 'raise': False, 'review': False, 'approve': False, 'close': False,
        }

    def test_locked_cell_must_exist(self):
        with pytest.raises(ImproperlyConfigured):
            build_catalog({'MODULES': ['WIR']})

    def test_templates_must_reference_known_roles(self):
        with pytest.raises(ImproperlyConfigured):
            build_catalog({'DEFAULT_TEMPLATES': {'Inspector': {'WIR': ['view']}}})

    def test_get_catalog_reads_settings(self, settings):
        get_catalog.cache_clear()
        settings.PMS_PERMISSIONS = {'MODULES': ['WIR', 'MIR', 'LTR']}
        try:
            assert get_catalog().modules == ('WIR', 'MIR', 'LTR')
        finally:
            get_catalog.cache_clear()
