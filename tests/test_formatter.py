import unittest

from elktail.tail.formatter import MISSING, evaluate_path, format_entry


class EvaluatePathTests(unittest.TestCase):
    def test_nested(self) -> None:
        self.assertEqual(evaluate_path({"user": {"name": "alice"}}, "user.name"), "alice")

    def test_flattened_dotted_key(self) -> None:
        self.assertEqual(evaluate_path({"host.name": "web-1"}, "host.name"), "web-1")

    def test_missing(self) -> None:
        self.assertIs(evaluate_path({"user": {}}, "user.name"), MISSING)
        self.assertIs(evaluate_path({"user": "alice"}, "user.name"), MISSING)
        self.assertIs(evaluate_path([1, 2], "x"), MISSING)

    def test_empty_path_returns_document(self) -> None:
        document = {"a": 1}
        self.assertIs(evaluate_path(document, ""), document)


class FormatEntryTests(unittest.TestCase):
    def test_template(self) -> None:
        document = {"user": {"name": "alice"}, "action": "login"}
        self.assertEqual(format_entry("%user.name did %action", document), "alice did login")

    def test_missing_key_becomes_empty(self) -> None:
        self.assertEqual(format_entry("[%level] %message", {"message": "hi"}), "[] hi")

    def test_timestamp_field_token(self) -> None:
        document = {"@timestamp": "2024-01-15T12:00:00.000Z", "message": "up"}
        self.assertEqual(format_entry("%@timestamp %message", document), "2024-01-15T12:00:00.000Z up")

    def test_non_string_values(self) -> None:
        document = {"status": 200, "ok": True, "tags": ["a", "b"], "none": None}
        self.assertEqual(format_entry("%status %ok %tags [%none]", document), '200 true ["a","b"] []')

    def test_prefix_tokens_do_not_clobber_each_other(self) -> None:
        document = {"user": "bob", "user_id": 7}
        self.assertEqual(format_entry("%user/%user_id", document), "bob/7")


if __name__ == "__main__":
    unittest.main()
