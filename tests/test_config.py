import io
import json
import tempfile
import unittest
from pathlib import Path

from elktail.config import (
    Configuration,
    QuerySettings,
    SearchTarget,
    apply_query_terms,
    load_default,
    save_default,
)
from elktail.tail.model import QueryDefinition
from elktail.utils.log import INFO, NullLogger, TailLogger


class ConfigurationTests(unittest.TestCase):
    def test_list_only(self) -> None:
        self.assertTrue(Configuration().is_list_only())
        self.assertFalse(Configuration(follow=True).is_list_only())
        dated = Configuration(follow=True, query=QuerySettings(after_datetime="2024-01-15"))
        self.assertTrue(dated.is_list_only())

    def test_split_credentials(self) -> None:
        config = Configuration(user="alice:s3:cret")
        config.split_credentials()
        self.assertEqual((config.user, config.password), ("alice", "s3:cret"))

    def test_user_without_password(self) -> None:
        config = Configuration(user="alice")
        config.split_credentials()
        self.assertEqual((config.user, config.password), ("alice", ""))

    def test_to_definition(self) -> None:
        settings = QuerySettings(terms=["a", "b"], timestamp_field="ts", before_datetime="2024-01-15")
        self.assertEqual(settings.to_definition(), QueryDefinition(
            terms=("a", "b"), timestamp_field="ts", before_datetime="2024-01-15",
            format=settings.format,
        ))

    def test_copy_config_relevant_settings(self) -> None:
        saved = Configuration(
            search_target=SearchTarget(url="http://es:9200", index_pattern="app-.*", kibana=True),
            query=QuerySettings(terms=["error"], timestamp_field="ts"),
            user="alice",
            password="pw",
            ssh_tunnel_params="bastion",
        )
        current = Configuration(follow=True, initial_entries=5)
        saved.copy_config_relevant_settings_to(current)

        self.assertEqual(current.search_target.url, "http://es:9200")
        self.assertEqual(current.search_target.index_pattern, "app-.*")
        self.assertTrue(current.search_target.kibana)
        self.assertEqual(current.query.terms, ["error"])
        self.assertEqual(current.query.timestamp_field, "ts")
        self.assertEqual((current.user, current.password), ("alice", "pw"))
        self.assertEqual(current.ssh_tunnel_params, "bastion")
        # Per-run settings stay as they were
        self.assertTrue(current.follow)
        self.assertEqual(current.initial_entries, 5)


class ApplyQueryTermsTests(unittest.TestCase):
    def test_save_query_replaces_and_saves(self) -> None:
        config = Configuration(save_query=True, query=QuerySettings(terms=["old"]))
        to_save = apply_query_terms(config, ["new", "terms"])
        self.assertEqual(config.query.terms, ["new", "terms"])
        self.assertEqual(to_save.query.terms, ["new", "terms"])

    def test_terms_are_anded_onto_stored_query(self) -> None:
        config = Configuration(query=QuerySettings(terms=["service:api", "level:error"]))
        to_save = apply_query_terms(config, ["timeout"])
        self.assertEqual(config.query.terms, ["service:api", "level:error", "AND", "timeout"])
        self.assertEqual(to_save.query.terms, ["service:api", "level:error"])

    def test_single_stored_term_is_replaced(self) -> None:
        config = Configuration(query=QuerySettings(terms=["error"]))
        apply_query_terms(config, ["warning"])
        self.assertEqual(config.query.terms, ["warning"])

    def test_no_terms_keeps_stored_query(self) -> None:
        config = Configuration(query=QuerySettings(terms=["error"]))
        apply_query_terms(config, [])
        self.assertEqual(config.query.terms, ["error"])


class PersistenceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.path = Path(self.tmp.name) / "default.json"

    def test_save_and_load(self) -> None:
        config = Configuration(
            search_target=SearchTarget(url="http://es:9200", extra_headers=["X-A: 1"], tunnel_url="http://localhost:9199"),
            query=QuerySettings(terms=["error"], after_datetime="2024-01-15"),
            user="alice",
            follow=True,
        )
        save_default(config, NullLogger(), self.path)

        saved = json.loads(self.path.read_text(encoding="utf-8"))
        self.assertNotIn("tunnel_url", saved["search_target"])
        self.assertNotIn("after_datetime", saved["query"])
        self.assertNotIn("follow", saved)
        self.assertNotIn("initial_entries", saved)

        loaded = load_default(NullLogger(), self.path)
        self.assertEqual(loaded.search_target.url, "http://es:9200")
        self.assertEqual(loaded.search_target.extra_headers, ["X-A: 1"])
        self.assertEqual(loaded.query.terms, ["error"])
        self.assertEqual(loaded.user, "alice")
        self.assertFalse(loaded.follow)

    def test_missing_file(self) -> None:
        self.assertIsNone(load_default(NullLogger(), self.path))

    def test_malformed_file_is_ignored(self) -> None:
        stream = io.StringIO()
        self.path.write_text("{not json", encoding="utf-8")
        self.assertIsNone(load_default(TailLogger(stream=stream, threshold=INFO), self.path))
        self.assertIn("malformed", stream.getvalue())

    def test_wrong_shape_is_ignored(self) -> None:
        self.path.write_text(json.dumps({"search_target": "oops"}), encoding="utf-8")
        self.assertIsNone(load_default(NullLogger(), self.path))


if __name__ == "__main__":
    unittest.main()
