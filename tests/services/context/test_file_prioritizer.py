"""
Tests for FilePrioritizer
"""

import pytest

from codepilot.models.schemas.context import FileKind
from codepilot.services.context.file_prioritizer import DEFAULT_PRIORITY, FilePrioritizer


@pytest.fixture
def prioritizer():
    return FilePrioritizer()


class TestPriority:
    """Test per-file scores."""

    @pytest.mark.parametrize("path,expected", [
        ("config.json", 10),
        ("package.json", 10),
        ("tsconfig.base.json", 10),
        ("pom.xml", 10),
        ("pyproject.toml", 10),
        ("main.ts", 8),
        ("index.js", 8),
        ("project/src/main/java/Foo.java", 8),
        ("UserService.ts", 7),
        ("SessionManager.java", 7),
        ("UserController.ts", 7),
        ("UserController.test.ts", 7),
        ("login.spec.ts", 3),
        ("project/__tests__/helpers.js", 3),
        ("random.txt", DEFAULT_PRIORITY),
    ])
    def test_scores(self, prioritizer, make_file, path, expected):
        assert prioritizer.priority(make_file(path)) == expected

    def test_matching_is_case_insensitive(self, prioritizer, make_file):
        assert prioritizer.priority(make_file("AppConfig.JSON")) == 10

    def test_windows_separators(self, prioritizer, make_file):
        assert prioritizer.priority(make_file("C:\\work\\test\\helpers.js", name="helpers.js")) == 3


class TestRank:
    """Test ordering."""

    def test_reference_ordering_example(self, prioritizer, make_file):
        files = [make_file(p) for p in ["random.txt", "UserController.test.ts", "config.json", "UserController.ts"]]

        ranked = prioritizer.rank(files)

        assert [f.name for f in ranked] == ["config.json", "UserController.ts", "UserController.test.ts", "random.txt"]

    def test_rank_is_stable_for_equal_priorities(self, prioritizer, make_file):
        files = [make_file(p) for p in ["b.txt", "a.txt", "c.txt"]]

        assert [f.name for f in prioritizer.rank(files)] == ["b.txt", "a.txt", "c.txt"]

    def test_rank_returns_new_list(self, prioritizer, make_file):
        files = [make_file("random.txt"), make_file("config.json")]

        ranked = prioritizer.rank(files)

        assert ranked is not files
        assert [f.name for f in files] == ["random.txt", "config.json"]

    def test_kind_does_not_affect_rank(self, prioritizer, make_file):
        files = [make_file("notes.md", kind=FileKind.REFERENCE), make_file("app.ts")]

        assert [f.name for f in prioritizer.rank(files)] == ["app.ts", "notes.md"]
