"""
Commit classification for Commit Watch.

Classification runs in two stages: a structural analysis that derives the
commit type from parent count and changed file paths, and a priority
decision that combines that type with critical file detection, change size
and message keywords.
"""

import re
from dataclasses import dataclass, field
from typing import Any

from .models import CommitFile, CommitRecord, CommitType, Priority

FILE_FAMILY_PATTERNS: dict[CommitType, list[re.Pattern[str]]] = {
    CommitType.DOCS: [
        re.compile(p, re.IGNORECASE)
        for p in (
            r"\.md$",
            r"\.mdx$",
            r"\.adoc$",
            r"\.rst$",
            r"\.txt$",
            r"^docs/",
            r"^documentation/",
            r"^\.github/ISSUE_TEMPLATE",
            r"^\.github/PULL_REQUEST_TEMPLATE",
            r"^README",
            r"^CHANGELOG",
            r"^CONTRIBUTING",
            r"^AUTHORS",
            r"^CREDITS",
            r"^LICENSE",
            r"^COPYING",
            r"^man/",
            r"\.1$",
            r"^wiki/",
        )
    ],
    CommitType.CONFIG: [
        re.compile(p, re.IGNORECASE)
        for p in (
            r"package\.json$",
            r"package-lock\.json$",
            r"yarn\.lock$",
            r"pnpm-lock\.yaml$",
            r"composer\.json$",
            r"Gemfile",
            r"requirements\.txt$",
            r"Pipfile",
            r"poetry\.lock$",
            r"Cargo\.toml$",
            r"go\.mod$",
            r"\.env\.example$",
            r"\.editorconfig$",
            r"\.gitignore$",
            r"\.gitattributes$",
            r"\.npmrc$",
            r"\.(eslintrc|prettierrc)",
            r"tsconfig\.json$",
            r"jsconfig\.json$",
        )
    ],
    CommitType.CI: [
        re.compile(p, re.IGNORECASE)
        for p in (
            r"^\.github/workflows/",
            r"^\.gitlab-ci\.yml$",
            r"^\.travis\.yml$",
            r"^Jenkinsfile$",
            r"^\.circleci/",
            r"^azure-pipelines\.yml$",
            r"^Dockerfile$",
            r"^docker-compose",
            r"^\.dockerignore$",
        )
    ],
    CommitType.TESTS: [
        re.compile(p, re.IGNORECASE)
        for p in (
            r"\.(test|spec)\.(js|ts|jsx|tsx|py|rb|go|rs)$",
            r"^tests?/",
            r"^__tests__/",
            r"^spec/",
            r"\.test$",
        )
    ],
    CommitType.LOCALIZATION: [
        re.compile(p, re.IGNORECASE)
        for p in (
            r"^locales?/",
            r"^i18n/",
            r"^lang/",
            r"\.(po|pot|mo)$",
            r"^translations?/",
        )
    ],
}

_ENTRYPOINT_EXT = r"\.(js|ts|jsx|tsx|py|rb|go|rs)$"

# (pattern, category, weight); only the first matching pattern counts per file
CRITICAL_FILE_PATTERNS: list[tuple[re.Pattern[str], str, int]] = [
    (re.compile(p, re.IGNORECASE), category, weight)
    for p, category, weight in (
        (r"auth", "security", 3),
        (r"security", "security", 3),
        (r"login", "security", 3),
        (r"password", "security", 3),
        (r"token", "security", 3),
        (r"session", "security", 2),
        (r"crypto", "security", 3),
        (r"encrypt", "security", 3),
        (r"^(src/)?index" + _ENTRYPOINT_EXT, "core", 2),
        (r"^(src/)?main" + _ENTRYPOINT_EXT, "core", 2),
        (r"^(src/)?app" + _ENTRYPOINT_EXT, "core", 2),
        (r"^(src/)?server" + _ENTRYPOINT_EXT, "core", 2),
        (r"kernel", "core", 3),
        (r"engine", "core", 2),
        (r"migration", "database", 2),
        (r"schema", "database", 2),
        (r"database", "database", 2),
        (r"models?/", "database", 2),
        (r"api/", "api", 1),
        (r"routes?/", "api", 1),
        (r"controllers?/", "api", 1),
        (r"endpoints?/", "api", 1),
        (r"webpack", "build", 2),
        (r"vite\.config", "build", 2),
        (r"rollup", "build", 2),
        (r"babel", "build", 1),
    )
]

HIGH_PRIORITY_KEYWORDS = ("fix", "hotfix", "breaking", "critical", "urgent", "security")
LOW_PRIORITY_KEYWORDS = ("format", "formatting", "style", "chore", "refactor", "rename")

LOW_PRIORITY_TYPES = frozenset(
    {
        CommitType.MERGE,
        CommitType.DOCS,
        CommitType.CONFIG,
        CommitType.CI,
        CommitType.LOCALIZATION,
    }
)

LARGE_DELETION_LINES = 100
LARGE_DELETION_RATIO = 0.3
LARGE_CHANGE_LINES = 500

TYPE_LABELS = {
    CommitType.MERGE: "MERGE",
    CommitType.DOCS: "DOCS",
    CommitType.CONFIG: "CONFIG",
    CommitType.CI: "CI/CD",
    CommitType.TESTS: "TESTS",
    CommitType.LOCALIZATION: "I18N",
    CommitType.CODE: "CODE",
}


@dataclass
class CommitAnalysis:
    """Structural type of a commit plus the counts that produced it."""

    type: CommitType
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class CriticalFileMatch:
    filename: str
    category: str
    weight: int
    additions: int = 0
    deletions: int = 0


@dataclass
class CriticalFileAnalysis:
    files: list[CriticalFileMatch] = field(default_factory=list)

    @property
    def has_critical(self) -> bool:
        return bool(self.files)

    @property
    def max_weight(self) -> int:
        return max((f.weight for f in self.files), default=0)

    @property
    def is_high_priority(self) -> bool:
        return self.max_weight >= 3 or len(self.files) >= 3


def type_label(commit_type: CommitType) -> str:
    return TYPE_LABELS.get(commit_type, commit_type.value.upper())


def categorize_file(filename: str) -> CommitType:
    """
    Assign a file to the first pattern family it matches.

    Returns:
        The family's commit type, or ``CommitType.CODE`` when none match
    """
    for family, patterns in FILE_FAMILY_PATTERNS.items():
        if any(pattern.search(filename) for pattern in patterns):
            return family
    return CommitType.CODE


def analyze_commit(commit: CommitRecord) -> CommitAnalysis:
    """
    Derive the structural type of a commit.

    Args:
        commit: Commit record, ideally enriched with file details

    Returns:
        CommitAnalysis with the type and supporting counts
    """
    if commit.is_merge:
        return CommitAnalysis(CommitType.MERGE, {"parent_count": len(commit.parent_shas)})

    if not commit.files:
        return CommitAnalysis(CommitType.CODE)

    counts = {family: 0 for family in CommitType if family is not CommitType.MERGE}
    for file in commit.files:
        counts[categorize_file(file.filename)] += 1

    total = len(commit.files)
    for family in FILE_FAMILY_PATTERNS:
        if counts[family] == total:
            return CommitAnalysis(family, {"file_count": total})

    additions, deletions = _change_totals(commit)
    return CommitAnalysis(
        CommitType.CODE,
        {
            "file_count": total,
            "categories": {family.value: count for family, count in counts.items()},
            "additions": additions,
            "deletions": deletions,
        },
    )


def analyze_critical_files(files: list[CommitFile]) -> CriticalFileAnalysis:
    """Match each file against the critical file table."""
    analysis = CriticalFileAnalysis()
    for file in files:
        for pattern, category, weight in CRITICAL_FILE_PATTERNS:
            if pattern.search(file.filename):
                analysis.files.append(
                    CriticalFileMatch(
                        filename=file.filename,
                        category=category,
                        weight=weight,
                        additions=file.additions,
                        deletions=file.deletions,
                    )
                )
                break
    return analysis


def _change_totals(commit: CommitRecord) -> tuple[int, int]:
    if commit.stats.total:
        return commit.stats.additions, commit.stats.deletions
    return (
        sum(f.additions for f in commit.files),
        sum(f.deletions for f in commit.files),
    )


def _has_large_deletion(files: list[CommitFile]) -> bool:
    return any(
        f.deletions > LARGE_DELETION_LINES
        and f.additions < f.deletions * LARGE_DELETION_RATIO
        for f in files
    )


def _contains_any(message: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in message for keyword in keywords)


def classify_commit(
    commit: CommitRecord, analysis: CommitAnalysis | None = None
) -> Priority:
    """
    Decide the notification priority of a commit.

    Rules are evaluated in order and the first match wins.

    Args:
        commit: Commit record with file details when available
        analysis: Precomputed structural analysis, if the caller has one

    Returns:
        The commit's priority
    """
    analysis = analysis or analyze_commit(commit)

    if analysis.type in LOW_PRIORITY_TYPES:
        return Priority.LOW
    if analysis.type is CommitType.TESTS:
        return Priority.MEDIUM

    message = commit.message.lower()
    critical = analyze_critical_files(commit.files)

    if critical.is_high_priority:
        return Priority.HIGH
    if _has_large_deletion(commit.files):
        return Priority.HIGH
    if len(critical.files) >= 2:
        return Priority.HIGH
    if _contains_any(message, HIGH_PRIORITY_KEYWORDS):
        return Priority.HIGH

    if critical.has_critical:
        return Priority.MEDIUM

    additions, deletions = _change_totals(commit)
    if additions + deletions > LARGE_CHANGE_LINES:
        return Priority.MEDIUM

    if _contains_any(message, LOW_PRIORITY_KEYWORDS):
        return Priority.LOW

    return Priority.MEDIUM
