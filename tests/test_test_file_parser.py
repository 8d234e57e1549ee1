"""
Unit tests for locating test declarations by source line.
"""

from intentest.core.test_file_parser import (
    EXPRESSION_PLACEHOLDER,
    TestLocation,
    filter_tests_by_line,
    parse_test_file,
)

from conftest import make_test_case

SOURCE = '''from intentest import test
import intentest

test("Log in").expect(
    "Dashboard visible"
)

intentest.test(["Sign up", "Register"]).expect("Welcome mail sent")

for user in ["alice", "bob"]:
    test(f"Profile of {user}").expect("Avatar shown")

test(lambda context: None)
'''


def write_source(tmp_path):
    path = tmp_path / "suite.test.py"
    path.write_text(SOURCE, encoding="utf-8")
    return path


class TestParseTestFile:
    """AST discovery of ``test(...)`` calls."""

    def test_locations(self, tmp_path):
        locations = parse_test_file(write_source(tmp_path))

        assert locations == [
            TestLocation("Log in", 4, 6),
            TestLocation("Sign up", 8, 8),
            TestLocation("Register", 8, 8),
            TestLocation(f"Profile of {EXPRESSION_PLACEHOLDER}", 11, 11),
        ]

    def test_wildcard_match(self):
        location = TestLocation(f"Profile of {EXPRESSION_PLACEHOLDER}", 1, 1)
        assert location.matches("Profile of alice")
        assert not location.matches("Settings of alice")

    def test_exact_match_only_without_placeholder(self):
        location = TestLocation("Log in", 1, 1)
        assert location.matches(" Log in ")
        assert not location.matches("Log in twice")


class TestFilterTestsByLine:
    """Narrowing a run to a source line."""

    def test_line_inside_chain(self, tmp_path):
        path = write_source(tmp_path)
        cases = [make_test_case(name) for name in ("Log in", "Sign up", "Register")]

        selected = filter_tests_by_line(cases, path, 5)

        assert [case.name for case in selected] == ["Log in"]

    def test_all_names_of_one_call(self, tmp_path):
        path = write_source(tmp_path)
        cases = [make_test_case(name) for name in ("Log in", "Sign up", "Register")]

        selected = filter_tests_by_line(cases, path, 8)

        assert [case.name for case in selected] == ["Sign up", "Register"]

    def test_generated_names(self, tmp_path):
        path = write_source(tmp_path)
        cases = [make_test_case(f"Profile of {user}") for user in ("alice", "bob")]

        selected = filter_tests_by_line(cases, path, 11)

        assert len(selected) == 2

    def test_no_test_at_line(self, tmp_path):
        path = write_source(tmp_path)
        assert filter_tests_by_line([make_test_case("Log in")], path, 2) == []

    def test_smallest_span_wins(self, tmp_path):
        path = tmp_path / "nested.test.py"
        path.write_text(
            "from intentest import test\n"
            "test('Outer').expect(\n"
            "    test('Inner').expect('x') and 'Outer done'\n"
            ")\n"
        )
        cases = [make_test_case("Outer"), make_test_case("Inner")]

        assert [case.name for case in filter_tests_by_line(cases, path, 3)] == ["Inner"]
        assert [case.name for case in filter_tests_by_line(cases, path, 4)] == ["Outer"]
