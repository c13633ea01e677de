from __future__ import annotations

import unittest

from hammer.components import component_for_key, legacy_variable, override_key
from hammer.errors import ConfigurationError
from hammer.versions import VersionTable


class VersionTableTests(unittest.TestCase):
    def test_defaults_to_master(self) -> None:
        table = VersionTable()
        self.assertEqual(table.resolve("eris"), "master")
        self.assertEqual(table.resolve("ember"), "master")

    def test_pinned_mode_uses_release_tags(self) -> None:
        table = VersionTable(use_pinned=True)
        self.assertEqual(table.resolve("atlas-cpp"), "0.6.3")
        self.assertEqual(table.resolve("libwfut"), "libwfut-0.2.3")
        self.assertEqual(table.resolve("worlds"), "master")
        # No pinned entry for the clients.
        self.assertEqual(table.resolve("ember"), "master")

    def test_explicit_override_beats_pinned_release(self) -> None:
        table = VersionTable(use_pinned=True, overrides={"atlas-cpp": "0.6.4"})
        self.assertEqual(table.resolve("atlas-cpp"), "0.6.4")
        self.assertEqual(table.resolve("varconf"), "1.0.1")

    def test_release_ember_with_pinned_libraries(self) -> None:
        table = VersionTable(use_pinned=True, overrides={"ember": "release-0.7.2"})
        self.assertEqual(table.resolve("ember"), "release-0.7.2")
        self.assertEqual(table.resolve("skstream"), "0.3.9")

    def test_unknown_component_is_rejected(self) -> None:
        with self.assertRaises(ConfigurationError) as ctx:
            VersionTable().resolve("nonexistent")
        self.assertIn("nonexistent", str(ctx.exception))

    def test_override_for_unknown_component_is_rejected(self) -> None:
        with self.assertRaises(ConfigurationError):
            VersionTable(overrides={"nonexistent": "1.0"})

    def test_as_mapping_covers_every_component(self) -> None:
        mapping = VersionTable(use_pinned=True).as_mapping()
        self.assertEqual(mapping["cyphesis"], "0.6.2")
        self.assertEqual(mapping["FireBreath"], "master")


class OverrideKeyTests(unittest.TestCase):
    def test_key_transform(self) -> None:
        self.assertEqual(override_key("atlas-cpp"), "ATLAS_CPP")
        self.assertEqual(override_key("metaserver-ng"), "METASERVER_NG")
        self.assertEqual(legacy_variable("atlas-cpp"), "ATLAS_CPP_VER")

    def test_component_lookup_accepts_all_key_forms(self) -> None:
        for key in ("atlas-cpp", "ATLAS_CPP", "ATLAS_CPP_VER"):
            self.assertEqual(component_for_key(key).name, "atlas-cpp")
        with self.assertRaises(ConfigurationError):
            component_for_key("NOPE_VER")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
