"""
Tests for commit type analysis and priority classification.
"""

import pytest

from commit_watch.classifier import (
    analyze_commit,
    analyze_critical_files,
    categorize_file,
    classify_commit,
    type_label,
)
from commit_watch.models import CommitFile, CommitType, Priority


class TestCategorizeFile:
    """Test file family matching."""

    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("README.md", CommitType.DOCS),
            ("docs/guide/setup.rst", CommitType.DOCS),
            ("LICENSE", CommitType.DOCS),
            ("package-lock.json", CommitType.CONFIG),
            ("backend/requirements.txt", CommitType.DOCS),
            ("Cargo.toml", CommitType.CONFIG),
            (".github/workflows/ci.yml", CommitType.CI),
            ("Dockerfile", CommitType.CI),
            ("tests/test_api.py", CommitType.TESTS),
            ("src/app.spec.ts", CommitType.TESTS),
            ("locales/fr.json", CommitType.LOCALIZATION),
            ("po/messages.po", CommitType.LOCALIZATION),
            ("src/server/handler.go", CommitType.CODE),
            ("wiki/Home.wiki", CommitType.DOCS),
            ("web/jsconfig.json", CommitType.CONFIG),
            (".dockerignore", CommitType.CI),
            ("cases/parser.test", CommitType.TESTS),
            ("translations/fr.json", CommitType.LOCALIZATION),
            ("translation/de.yml", CommitType.LOCALIZATION),
        ],
    )
    def test_first_matching_family_wins(self, filename, expected):
        """Files are assigned to the first family whose pattern matches."""
        assert categorize_file(filename) is expected

    def test_matching_is_case_insensitive(self):
        assert categorize_file("readme.MD") is CommitType.DOCS
        assert categorize_file("JENKINSFILE") is CommitType.CI


class TestAnalyzeCommit:
    """Test structural commit analysis."""

    def test_merge_commit(self, make_commit):
        """Two parents make a merge regardless of files."""
        commit = make_commit(parents=2, files=[("src/auth.py", 500, 0)])

        analysis = analyze_commit(commit)

        assert analysis.type is CommitType.MERGE
        assert analysis.details == {"parent_count": 2}

    def test_single_family_commit(self, make_commit):
        commit = make_commit(files=[("README.md", 3, 1), ("docs/api.md", 10, 2)])

        analysis = analyze_commit(commit)

        assert analysis.type is CommitType.DOCS
        assert analysis.details == {"file_count": 2}

    def test_mixed_commit_is_code(self, make_commit):
        """Files from several families are treated as code with counts."""
        commit = make_commit(
            files=[("README.md", 3, 1), ("src/main.rs", 40, 10), ("tests/test_x.py", 5, 0)]
        )

        analysis = analyze_commit(commit)

        assert analysis.type is CommitType.CODE
        assert analysis.details["file_count"] == 3
        assert analysis.details["categories"]["docs"] == 1
        assert analysis.details["categories"]["tests"] == 1
        assert analysis.details["categories"]["code"] == 1
        assert analysis.details["additions"] == 48
        assert analysis.details["deletions"] == 11

    def test_commit_without_files(self, make_commit):
        analysis = analyze_commit(make_commit(files=[]))

        assert analysis.type is CommitType.CODE
        assert analysis.details == {}


class TestCriticalFiles:
    """Test critical file detection."""

    def test_security_file_is_high_weight(self):
        analysis = analyze_critical_files([CommitFile(filename="auth/login.go")])

        assert analysis.has_critical
        assert analysis.max_weight == 3
        assert analysis.is_high_priority

    def test_only_first_pattern_counts_per_file(self):
        """A file matching several patterns is recorded once."""
        analysis = analyze_critical_files(
            [CommitFile(filename="api/session_token.py")]
        )

        assert len(analysis.files) == 1
        assert analysis.files[0].category == "security"
        assert analysis.files[0].weight == 3

    def test_three_low_weight_files_are_high_priority(self):
        analysis = analyze_critical_files(
            [
                CommitFile(filename="api/users.py"),
                CommitFile(filename="routes/index.js"),
                CommitFile(filename="controllers/home.rb"),
            ]
        )

        assert analysis.max_weight == 1
        assert analysis.is_high_priority

    def test_no_critical_files(self):
        analysis = analyze_critical_files([CommitFile(filename="src/utils/strings.py")])

        assert not analysis.has_critical
        assert analysis.max_weight == 0
        assert not analysis.is_high_priority


class TestClassifyCommit:
    """Test the ordered priority rules."""

    def test_security_file_is_high(self, make_commit):
        commit = make_commit(message="Tidy up", files=[("auth/login.go", 4, 2)])
        assert classify_commit(commit) is Priority.HIGH

    def test_docs_only_is_low(self, make_commit):
        """Structural type beats keywords in the message."""
        commit = make_commit(message="Fix critical typo", files=[("README.md", 1, 1)])
        assert classify_commit(commit) is Priority.LOW

    def test_translations_only_is_low(self, make_commit):
        commit = make_commit(
            message="Update French strings",
            files=[("translations/fr.json", 3, 1), ("translations/de.json", 2, 2)],
        )
        assert analyze_commit(commit).type is CommitType.LOCALIZATION
        assert classify_commit(commit) is Priority.LOW

    def test_merge_is_low(self, make_commit):
        commit = make_commit(message="Merge branch 'hotfix'", parents=2)
        assert classify_commit(commit) is Priority.LOW

    def test_tests_only_is_medium(self, make_commit):
        commit = make_commit(message="security regression test", files=[("tests/test_auth.py", 50, 0)])
        assert classify_commit(commit) is Priority.MEDIUM

    def test_large_deletion_is_high(self, make_commit):
        commit = make_commit(message="Drop legacy module", files=[("src/legacy.py", 10, 250)])
        assert classify_commit(commit) is Priority.HIGH

    def test_deletion_with_enough_additions_is_not_high(self, make_commit):
        """Rewrites that add back at least 30% of the deleted lines are not flagged."""
        commit = make_commit(message="Rewrite parser", files=[("src/parser.py", 90, 250)])
        assert classify_commit(commit) is Priority.MEDIUM

    def test_two_critical_files_are_high(self, make_commit):
        commit = make_commit(
            message="Add endpoint",
            files=[("api/users.py", 10, 0), ("routes/users.js", 5, 0)],
        )
        assert classify_commit(commit) is Priority.HIGH

    def test_high_keyword_is_high(self, make_commit):
        commit = make_commit(message="Hotfix for crash on startup", files=[("src/util.py", 2, 1)])
        assert classify_commit(commit) is Priority.HIGH

    def test_keyword_matches_substrings(self, make_commit):
        """Keywords match anywhere in the message, e.g. 'prefix' contains 'fix'."""
        commit = make_commit(message="Use prefix tree", files=[("src/trie.py", 20, 0)])
        assert classify_commit(commit) is Priority.HIGH

    def test_single_low_weight_critical_file_is_medium(self, make_commit):
        commit = make_commit(message="Add pagination", files=[("api/items.py", 20, 2)])
        assert classify_commit(commit) is Priority.MEDIUM

    def test_critical_file_beats_low_keyword(self, make_commit):
        """A critical file yields medium before low keywords are considered."""
        commit = make_commit(message="chore: rename handler", files=[("api/items.py", 2, 2)])
        assert classify_commit(commit) is Priority.MEDIUM

    def test_large_change_is_medium(self, make_commit):
        commit = make_commit(message="chore: update vendored data", files=[("src/data.py", 600, 10)])
        assert classify_commit(commit) is Priority.MEDIUM

    def test_large_change_uses_file_sums_without_stats(self, make_commit):
        commit = make_commit(
            message="style pass",
            files=[("src/a.py", 300, 0), ("src/b.py", 250, 0)],
            stats=(0, 0),
        )
        assert classify_commit(commit) is Priority.MEDIUM

    def test_low_keyword_is_low(self, make_commit):
        commit = make_commit(message="Refactor helpers", files=[("src/helpers.py", 20, 20)])
        assert classify_commit(commit) is Priority.LOW

    def test_default_is_medium(self, make_commit):
        commit = make_commit(message="Add dark mode", files=[("src/theme.py", 40, 5)])
        assert classify_commit(commit) is Priority.MEDIUM

    def test_commit_without_files_uses_message(self, make_commit):
        assert classify_commit(make_commit(message="Add feature", files=[])) is Priority.MEDIUM
        assert classify_commit(make_commit(message="Formatting", files=[])) is Priority.LOW

    def test_classification_is_deterministic(self, make_commit):
        commit = make_commit(message="Update", files=[("auth/login.go", 1, 1)])
        assert {classify_commit(commit) for _ in range(5)} == {Priority.HIGH}


def test_type_labels():
    assert type_label(CommitType.CI) == "CI/CD"
    assert type_label(CommitType.LOCALIZATION) == "I18N"
    assert type_label(CommitType.CODE) == "CODE"
