"""Manage and use the package manifest (`Manifest.txt`) and ignore file (`.cartignore`)."""

from __future__ import annotations

import difflib
import os
import sys
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from cartage.foundation.errors import EmptyManifestError, InvalidIgnoreModeError, MissingManifestError
from cartage.framework.patterns import IgnorePattern, compile_patterns, prune, strip_comments_and_empty_lines
from cartage.framework.plugin import Plugin, register_plugin

IGNORE_FILE = ".cartignore"
SLUGIGNORE_FILE = ".slugignore"
MANIFEST_FILE = "Manifest.txt"

IGNORE_MODES: tuple[str, ...] = ("overwrite", "merge")
_MODE_ALIASES = {"force": "overwrite"}

DEFAULT_IGNORE = """\
# Some of these are in .gitignore, but let's remove these just in case they got
# checked in.

# Exact files to remove. Matches the whole path.
.DS_Store
.autotest
.editorconfig
.env
.git-wtfrc
.gitignore
.local.vimrc
.lvimrc
.cartignore
.powenv
.rake_tasks~
.rspec
.rubocop.yml
.rvmrc
.semaphore-cache
.workenv
Guardfile
README.md
bin/build
bin/notify-project-board
bin/osx-bootstrap
bin/setup

# Patterns to remove. These have a *, **, or ? in them. Dotfiles are matched
# and {a,b} alternatives are expanded.
*.rbc
.*.swp
**/.DS_Store

# Directories to remove. These should end with a slash. Matches any path that
# starts with the directory.
db/seeds/development/
db/seeds/test/
# db/seeds/dit/
# db/seeds/staging/
log/
test/
tests/
rspec/
spec/
specs/
feature/
features/
tmp/
vendor/bundle/
"""


def normalize_ignore_mode(mode: str | None) -> str | None:
    if mode is None:
        return None
    normalized = str(mode).strip().lower()
    if not normalized:
        return None
    normalized = _MODE_ALIASES.get(normalized, normalized)
    if normalized not in IGNORE_MODES:
        raise InvalidIgnoreModeError(
            f"Invalid ignore mode {mode!r} (expected one of: {', '.join(IGNORE_MODES)})"
        )
    return normalized


def resolve_ignore_mode(*, mode: str | None = None, force: bool = False, merge: bool = False) -> str | None:
    """Combine `--mode`, `--force`, and `--merge` into one mode, rejecting conflicts."""

    normalized = normalize_ignore_mode(mode)

    if merge and force:
        raise InvalidIgnoreModeError("Cannot mix options --force and --merge")
    if merge and normalized == "overwrite":
        raise InvalidIgnoreModeError("Cannot mix option --merge and --mode overwrite")
    if force and normalized == "merge":
        raise InvalidIgnoreModeError("Cannot mix option --force and --mode merge")

    if merge or normalized == "merge":
        return "merge"
    if force or normalized == "overwrite":
        return "overwrite"
    return None


def _read_lines(path: Path) -> list[str]:
    return path.read_text(encoding="utf-8").splitlines()


def _dedupe(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


@register_plugin
class Manifest(Plugin):
    features: frozenset[str] = frozenset()

    @property
    def ignore_file(self) -> Path:
        return self.cartage.root_path / IGNORE_FILE

    @property
    def slugignore_file(self) -> Path:
        return self.cartage.root_path / SLUGIGNORE_FILE

    @property
    def manifest_file(self) -> Path:
        return self.cartage.root_path / MANIFEST_FILE

    @contextmanager
    def resolve(self, path: str | os.PathLike[str] | None = None) -> Iterator[Path]:
        """
        Resolve the manifest into a file list usable by `tar -T`.

        Reads the manifest, prunes it with the package ignores (falling back to
        `.slugignore`, then the defaults), and writes each entry prefixed with
        the basename of `path` (default: the working directory) to a scratch
        file. `tar` is run from the parent of `path`, so the prefix makes every
        entry resolvable. The scratch file is removed when the block exits.
        """

        if not self.manifest_file.exists():
            raise MissingManifestError()

        data = strip_comments_and_empty_lines(_read_lines(self.manifest_file))
        if not data:
            raise EmptyManifestError()

        prefix = Path(path if path is not None else os.getcwd()).expanduser().resolve().name
        entries = prune(data, self.ignore_patterns(with_slugignore=True))

        handle = tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", prefix="Manifest.", suffix=".txt", delete=False
        )
        scratch = Path(handle.name)
        try:
            with handle:
                handle.write("".join(f"{prefix}/{entry}\n" for entry in entries))
            yield scratch
        finally:
            scratch.unlink(missing_ok=True)

    def generate(self) -> Path:
        """Write Manifest.txt from the tracked files."""

        return self._create_file_list(self.manifest_file)

    def check(self) -> bool:
        """
        Compare Manifest.txt with a freshly generated file list.

        Prints a unified diff unless the run is quiet. Returns True when the
        two are identical.
        """

        if not self.manifest_file.exists():
            raise MissingManifestError()

        handle = tempfile.NamedTemporaryFile(prefix="Manifest.", suffix=".tmp", delete=False)
        handle.close()
        scratch = Path(handle.name)
        try:
            self._create_file_list(scratch)
            diff = list(
                difflib.unified_diff(
                    self.manifest_file.read_text(encoding="utf-8").splitlines(keepends=True),
                    scratch.read_text(encoding="utf-8").splitlines(keepends=True),
                    fromfile=self.manifest_file.name,
                    tofile=scratch.name,
                )
            )
        finally:
            scratch.unlink(missing_ok=True)

        if diff and not self.cartage.quiet:
            for line in diff:
                sys.stdout.write(line if line.endswith("\n") else line + "\n")
        return not diff

    def install_default_ignore(self, mode: str | None = None) -> None:
        """
        Install the default .cartignore.

        With no mode an existing file is left alone. `overwrite` (alias
        `force`) replaces it with the defaults; `merge` appends the defaults
        that are not already listed.
        """

        mode = normalize_ignore_mode(mode)

        if mode == "merge":
            self.cartage.display("Merging .cartignore...")
            existing: list[str] = []
            if self.ignore_file.exists():
                existing = strip_comments_and_empty_lines(_read_lines(self.ignore_file))

            if existing:
                defaults = strip_comments_and_empty_lines(DEFAULT_IGNORE.splitlines())
                data = "\n".join(_dedupe(existing + defaults)) + "\n"
            else:
                data = DEFAULT_IGNORE
        elif mode == "overwrite" or not self.ignore_file.exists():
            self.cartage.display("Creating .cartignore...")
            data = DEFAULT_IGNORE
        else:
            self.cartage.display(".cartignore already exists, skipping...")
            return

        self._write_ignore_file(data)

    def ignore_patterns(self, *, with_slugignore: bool = False) -> list[IgnorePattern]:
        """Patterns from the first existing source: .cartignore, .slugignore, defaults."""

        if self.ignore_file.exists():
            lines = _read_lines(self.ignore_file)
        elif with_slugignore and self.slugignore_file.exists():
            lines = _read_lines(self.slugignore_file)
        else:
            lines = DEFAULT_IGNORE.splitlines()
        return compile_patterns(lines)

    def _write_ignore_file(self, data: str) -> None:
        self.ignore_file.write_text(data, encoding="utf-8")

    def _tracked_files(self) -> list[str]:
        output = self.cartage.capture(["git", "ls-files", "-z"], cwd=self.cartage.root_path)
        return [entry for entry in output.split("\0") if entry.strip()]

    def _create_file_list(self, filename: Path) -> Path:
        # Generation never falls back to .slugignore; only resolve does.
        files = sorted(set(prune(self._tracked_files(), self.ignore_patterns())))
        filename.write_text("".join(f"{entry}\n" for entry in files), encoding="utf-8")
        return filename
