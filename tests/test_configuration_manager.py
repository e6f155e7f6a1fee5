"""
Tests for saved microscope profiles (JSON storage, YAML import/export).
"""

import json
import tempfile
import unittest
from pathlib import Path

import yaml

from py2sharksem.core.errors import ConfigurationError, ErrorCodes
from py2sharksem.services.configuration_manager import (
    ConfigurationManager, MicroscopeConfiguration
)


class TestMicroscopeConfiguration(unittest.TestCase):

    def test_from_dict_defaults(self):
        config = MicroscopeConfiguration.from_dict({'name': 'Vega', 'host': 'sem-pc'})
        self.assertEqual(config.port, 8300)
        self.assertEqual(config.timeout, 30.0)
        self.assertEqual(str(config), "Vega (sem-pc:8300)")

    def test_from_dict_missing_keys(self):
        with self.assertRaises(ConfigurationError) as ctx:
            MicroscopeConfiguration.from_dict({'name': 'Vega'})
        self.assertEqual(ctx.exception.error_code, ErrorCodes.CONFIG_INVALID)
        self.assertEqual(ctx.exception.context['setting'], 'host')

    def test_from_dict_bad_value(self):
        with self.assertRaises(ConfigurationError):
            MicroscopeConfiguration.from_dict({'name': 'Vega', 'host': 'sem', 'port': 'eighty'})

    def test_from_dict_not_a_mapping(self):
        with self.assertRaises(ConfigurationError):
            MicroscopeConfiguration.from_dict(['Vega', 'sem'])

    def test_to_settings(self):
        config = MicroscopeConfiguration('Mira', '10.0.0.7', port=9000, timeout=5.0)
        settings = config.to_settings()
        self.assertEqual((settings.host, settings.port, settings.data_port), ('10.0.0.7', 9000, 9001))
        self.assertEqual(settings.timeout, 5.0)


class TestConfigurationManager(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        self.root = Path(self.temp_dir.name)
        self.config_file = self.root / 'profiles' / 'sem.json'

    def test_missing_file_means_no_profiles(self):
        manager = ConfigurationManager(self.config_file)
        self.assertEqual(manager.discover_configurations(), [])
        self.assertIsNone(manager.get_default_configuration())

    def test_save_and_reload(self):
        manager = ConfigurationManager(self.config_file)
        ok, _ = manager.save_configuration('Vega', '192.168.1.50', description='Lab 2')
        self.assertTrue(ok)
        ok, _ = manager.save_configuration('Amber', 'amber-pc', port=8400)
        self.assertTrue(ok)

        reloaded = ConfigurationManager(self.config_file)
        self.assertEqual(reloaded.get_configuration_names(), ['Amber', 'Vega'])
        self.assertEqual(reloaded.get_default_configuration().name, 'Amber')
        self.assertEqual(reloaded.get_configuration('Vega').description, 'Lab 2')

        with open(self.config_file) as f:
            self.assertEqual(json.load(f)['version'], '1.0')

    def test_save_rejects_duplicates_and_invalid(self):
        manager = ConfigurationManager(self.config_file)
        manager.save_configuration('Vega', 'sem')

        ok, message = manager.save_configuration('Vega', 'other')
        self.assertFalse(ok)
        self.assertIn('already exists', message)

        ok, message = manager.save_configuration('Broken', 'bad host!', port=0)
        self.assertFalse(ok)
        self.assertIn('Invalid parameters', message)
        self.assertIsNone(manager.get_configuration('Broken'))

    def test_delete(self):
        manager = ConfigurationManager(self.config_file)
        manager.save_configuration('Vega', 'sem')

        self.assertTrue(manager.delete_configuration('Vega')[0])
        self.assertFalse(manager.delete_configuration('Vega')[0])
        self.assertEqual(ConfigurationManager(self.config_file).discover_configurations(), [])

    def test_refresh_picks_up_external_changes(self):
        manager = ConfigurationManager(self.config_file)
        ConfigurationManager(self.config_file).save_configuration('Vega', 'sem')
        self.assertEqual(manager.discover_configurations(), [])
        self.assertEqual(len(manager.refresh()), 1)

    def test_malformed_json(self):
        self.config_file.parent.mkdir(parents=True)
        self.config_file.write_text('{not json')
        with self.assertRaises(ConfigurationError):
            ConfigurationManager(self.config_file)

    def test_yaml_import(self):
        yaml_file = self.root / 'microscopes.yaml'
        yaml_file.write_text(
            "microscopes:\n"
            "  - name: Vega Lab 2\n"
            "    host: 192.168.1.50\n"
            "    timeout: 10\n"
            "  - name: Mira\n"
            "    host: mira-pc\n"
            "    port: 8400\n"
        )
        manager = ConfigurationManager(self.config_file)

        self.assertEqual(manager.import_yaml(yaml_file), 2)
        self.assertEqual(manager.get_configuration('Vega Lab 2').timeout, 10.0)
        self.assertEqual(manager.get_configuration('Mira').port, 8400)
        self.assertTrue(self.config_file.exists())

    def test_yaml_import_skips_existing_unless_overwrite(self):
        yaml_file = self.root / 'microscopes.yaml'
        yaml_file.write_text("microscopes:\n  - name: Vega\n    host: new-host\n")
        manager = ConfigurationManager(self.config_file)
        manager.save_configuration('Vega', 'old-host')

        self.assertEqual(manager.import_yaml(yaml_file), 0)
        self.assertEqual(manager.get_configuration('Vega').host, 'old-host')

        self.assertEqual(manager.import_yaml(yaml_file, overwrite=True), 1)
        self.assertEqual(manager.get_configuration('Vega').host, 'new-host')

    def test_yaml_import_errors(self):
        manager = ConfigurationManager(self.config_file)
        cases = {
            'no_list.yaml': "microscopes: vega\n",
            'missing_host.yaml': "microscopes:\n  - name: Vega\n",
            'bad_port.yaml': "microscopes:\n  - name: Vega\n    host: sem\n    port: 70000\n",
            'broken.yaml': "microscopes: [unclosed\n",
        }
        for filename, content in cases.items():
            with self.subTest(filename=filename):
                path = self.root / filename
                path.write_text(content)
                with self.assertRaises(ConfigurationError):
                    manager.import_yaml(path)
        self.assertEqual(manager.discover_configurations(), [])

    def test_yaml_import_missing_file(self):
        manager = ConfigurationManager(self.config_file)
        with self.assertRaises(ConfigurationError):
            manager.import_yaml(self.root / 'absent.yaml')

    def test_yaml_export(self):
        manager = ConfigurationManager(self.config_file)
        manager.save_configuration('Vega', 'sem', port=8300, description='Basement')
        export_file = self.root / 'out' / 'export.yaml'

        manager.export_yaml(export_file)

        with open(export_file) as f:
            data = yaml.safe_load(f)
        self.assertEqual(data['microscopes'][0]['name'], 'Vega')
        self.assertEqual(data['microscopes'][0]['description'], 'Basement')

        other = ConfigurationManager(self.root / 'other.json')
        self.assertEqual(other.import_yaml(export_file), 1)


if __name__ == '__main__':
    unittest.main()
