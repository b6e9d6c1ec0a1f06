import os
from pathlib import Path

import pytest

from cartage.foundation.errors import EmptyManifestError, InvalidIgnoreModeError, MissingManifestError
from cartage.plugins.manifest import DEFAULT_IGNORE, resolve_ignore_mode
from cartage.framework.patterns import strip_comments_and_empty_lines


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_generate_prunes_with_default_ignore_sorts_and_dedupes(make_cartage, fake_git, repo_root):
    fake_git.tracked = [
        "lib/b.rb",
        "README.md",
        "spec/a_spec.rb",
        "app/a.rb",
        "lib/b.rb",
        "tmp/cache.bin",
        "app/.DS_Store",
        "Gemfile",
    ]
    cartage = make_cartage()

    cartage.manifest.generate()

    assert (repo_root / "Manifest.txt").read_text(encoding="utf-8") == "Gemfile\napp/a.rb\nlib/b.rb\n"


def test_generate_uses_cartignore_when_present(make_cartage, fake_git, repo_root):
    fake_git.tracked = ["README.md", "app/a.rb", "docs/guide.md"]
    _write(repo_root / ".cartignore", "docs/\n")
    cartage = make_cartage()

    cartage.manifest.generate()

    assert (repo_root / "Manifest.txt").read_text(encoding="utf-8") == "README.md\napp/a.rb\n"


def test_generate_never_reads_slugignore(make_cartage, fake_git, repo_root):
    fake_git.tracked = ["app/a.rb", "docs/guide.md"]
    _write(repo_root / ".slugignore", "docs/\n")
    cartage = make_cartage()

    cartage.manifest.generate()

    assert "docs/guide.md" in (repo_root / "Manifest.txt").read_text(encoding="utf-8")


def test_generate_overwrites_existing_manifest(make_cartage, fake_git, repo_root):
    fake_git.tracked = ["app/a.rb"]
    _write(repo_root / "Manifest.txt", "stale\n")
    cartage = make_cartage()

    cartage.manifest.generate()

    assert (repo_root / "Manifest.txt").read_text(encoding="utf-8") == "app/a.rb\n"


def test_check_missing_manifest_raises(make_cartage):
    cartage = make_cartage()

    with pytest.raises(MissingManifestError, match="cartage manifest generate"):
        cartage.manifest.check()


def test_check_up_to_date_returns_true(make_cartage, fake_git, repo_root, capsys):
    fake_git.tracked = ["app/a.rb", "lib/b.rb"]
    _write(repo_root / "Manifest.txt", "app/a.rb\nlib/b.rb\n")
    cartage = make_cartage()

    assert cartage.manifest.check() is True
    assert capsys.readouterr().out == ""


def test_check_stale_prints_unified_diff(make_cartage, fake_git, repo_root, capsys):
    fake_git.tracked = ["app/a.rb", "lib/c.rb"]
    _write(repo_root / "Manifest.txt", "app/a.rb\nlib/b.rb\n")
    cartage = make_cartage()

    assert cartage.manifest.check() is False

    out = capsys.readouterr().out
    assert "--- Manifest.txt" in out
    assert "-lib/b.rb" in out
    assert "+lib/c.rb" in out


def test_check_quiet_suppresses_diff(make_cartage, fake_git, repo_root, capsys):
    fake_git.tracked = ["app/a.rb"]
    _write(repo_root / "Manifest.txt", "lib/b.rb\n")
    cartage = make_cartage(quiet=True)

    assert cartage.manifest.check() is False
    assert capsys.readouterr().out == ""


def test_check_removes_scratch_file_when_listing_fails(make_cartage, fake_git, repo_root, monkeypatch, tmp_path):
    import tempfile

    _write(repo_root / "Manifest.txt", "app/a.rb\n")
    cartage = make_cartage()
    scratch_dir = tmp_path / "scratch"
    scratch_dir.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch_dir))

    def _boom():
        raise RuntimeError("listing failed")

    monkeypatch.setattr(cartage.manifest, "_tracked_files", _boom)

    with pytest.raises(RuntimeError, match="listing failed"):
        cartage.manifest.check()
    assert list(scratch_dir.iterdir()) == []


def test_resolve_prefixes_entries_and_removes_scratch_file(make_cartage, repo_root):
    _write(repo_root / "Manifest.txt", "# listed files\napp/a.rb\n\nREADME.md\nlib/b.rb\n")
    cartage = make_cartage()

    with cartage.manifest.resolve(repo_root) as file_list:
        assert file_list.read_text(encoding="utf-8") == "app/app/a.rb\napp/lib/b.rb\n"
        scratch = file_list

    assert not scratch.exists()


def test_resolve_preserves_manifest_order(make_cartage, repo_root):
    _write(repo_root / "Manifest.txt", "z.rb\na.rb\n")
    cartage = make_cartage()

    with cartage.manifest.resolve(repo_root) as file_list:
        assert file_list.read_text(encoding="utf-8") == "app/z.rb\napp/a.rb\n"


def test_resolve_defaults_prefix_to_working_directory(make_cartage, repo_root, tmp_path, monkeypatch):
    _write(repo_root / "Manifest.txt", "a.rb\n")
    elsewhere = tmp_path / "checkout"
    elsewhere.mkdir()
    monkeypatch.chdir(elsewhere)
    cartage = make_cartage()

    with cartage.manifest.resolve() as file_list:
        assert file_list.read_text(encoding="utf-8") == "checkout/a.rb\n"


def test_resolve_falls_back_to_slugignore(make_cartage, repo_root):
    _write(repo_root / "Manifest.txt", "app/a.rb\ndocs/guide.md\nREADME.md\n")
    _write(repo_root / ".slugignore", "docs/\n")
    cartage = make_cartage()

    with cartage.manifest.resolve(repo_root) as file_list:
        # .slugignore replaces the defaults entirely, so README.md stays.
        assert file_list.read_text(encoding="utf-8") == "app/app/a.rb\napp/README.md\n"


def test_resolve_prefers_cartignore_over_slugignore(make_cartage, repo_root):
    _write(repo_root / "Manifest.txt", "app/a.rb\ndocs/guide.md\nvendor/x.rb\n")
    _write(repo_root / ".cartignore", "vendor/\n")
    _write(repo_root / ".slugignore", "docs/\n")
    cartage = make_cartage()

    with cartage.manifest.resolve(repo_root) as file_list:
        assert file_list.read_text(encoding="utf-8") == "app/app/a.rb\napp/docs/guide.md\n"


def test_resolve_missing_manifest_raises(make_cartage, repo_root):
    cartage = make_cartage()

    with pytest.raises(MissingManifestError):
        with cartage.manifest.resolve(repo_root):
            pass


def test_resolve_empty_manifest_raises(make_cartage, repo_root):
    _write(repo_root / "Manifest.txt", "# nothing\n\n")
    cartage = make_cartage()

    with pytest.raises(EmptyManifestError):
        with cartage.manifest.resolve(repo_root):
            pass


def test_resolve_removes_scratch_file_when_block_raises(make_cartage, repo_root):
    _write(repo_root / "Manifest.txt", "a.rb\n")
    cartage = make_cartage()
    seen: list[Path] = []

    with pytest.raises(RuntimeError):
        with cartage.manifest.resolve(repo_root) as file_list:
            seen.append(file_list)
            raise RuntimeError("tar failed")

    assert seen and not seen[0].exists()


def test_install_default_ignore_creates_missing_file(make_cartage, repo_root):
    cartage = make_cartage()

    cartage.manifest.install_default_ignore()

    assert (repo_root / ".cartignore").read_text(encoding="utf-8") == DEFAULT_IGNORE


def test_install_default_ignore_skips_existing_file(make_cartage, repo_root, caplog):
    _write(repo_root / ".cartignore", "custom/\n")
    cartage = make_cartage()

    with caplog.at_level("INFO", logger="cartage"):
        cartage.manifest.install_default_ignore()

    assert (repo_root / ".cartignore").read_text(encoding="utf-8") == "custom/\n"
    assert ".cartignore already exists, skipping..." in caplog.text


@pytest.mark.parametrize("mode", ["overwrite", "force"])
def test_install_default_ignore_overwrite(make_cartage, repo_root, mode):
    _write(repo_root / ".cartignore", "custom/\n")
    cartage = make_cartage()

    cartage.manifest.install_default_ignore(mode)

    assert (repo_root / ".cartignore").read_text(encoding="utf-8") == DEFAULT_IGNORE


def test_install_default_ignore_merge_dedupes(make_cartage, repo_root):
    _write(repo_root / ".cartignore", "# mine\ncustom/\nlog/\n")
    cartage = make_cartage()

    cartage.manifest.install_default_ignore("merge")

    lines = (repo_root / ".cartignore").read_text(encoding="utf-8").splitlines()
    defaults = strip_comments_and_empty_lines(DEFAULT_IGNORE.splitlines())
    assert lines[:2] == ["custom/", "log/"]
    assert lines.count("log/") == 1
    assert set(defaults) <= set(lines)
    assert "# mine" not in lines


def test_install_default_ignore_merge_without_existing_writes_defaults(make_cartage, repo_root):
    _write(repo_root / ".cartignore", "# only comments\n")
    cartage = make_cartage()

    cartage.manifest.install_default_ignore("merge")

    assert (repo_root / ".cartignore").read_text(encoding="utf-8") == DEFAULT_IGNORE


def test_install_default_ignore_rejects_unknown_mode(make_cartage, repo_root):
    cartage = make_cartage()

    with pytest.raises(InvalidIgnoreModeError):
        cartage.manifest.install_default_ignore("append")
    assert not (repo_root / ".cartignore").exists()


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"force": True, "merge": True}, "Cannot mix options --force and --merge"),
        ({"merge": True, "mode": "overwrite"}, "Cannot mix option --merge and --mode overwrite"),
        ({"force": True, "mode": "merge"}, "Cannot mix option --force and --mode merge"),
    ],
)
def test_resolve_ignore_mode_conflicts(kwargs, message):
    with pytest.raises(InvalidIgnoreModeError, match=message) as excinfo:
        resolve_ignore_mode(**kwargs)
    assert excinfo.value.exit_status == 64


@pytest.mark.parametrize(
    ("kwargs", "expected"),
    [
        ({}, None),
        ({"force": True}, "overwrite"),
        ({"merge": True}, "merge"),
        ({"mode": "merge"}, "merge"),
        ({"mode": "overwrite", "force": True}, "overwrite"),
    ],
)
def test_resolve_ignore_mode(kwargs, expected):
    assert resolve_ignore_mode(**kwargs) == expected


def test_manifest_offers_no_pipeline_phases(make_cartage):
    cartage = make_cartage()

    assert not cartage.manifest.offer("build_package")
    assert not cartage.manifest.offer("check")
    assert os.fspath(cartage.manifest.manifest_file).endswith("Manifest.txt")


@pytest.mark.parametrize("ignore", ["spec/", "/spec"])
def test_resolve_directory_ignore_forms_and_prefix(make_cartage, repo_root, tmp_path, ignore):
    _write(repo_root / "Manifest.txt", "bin/build\nbin/cartage\nlib/cartage.rb\nspec/cartage.rb\n")
    _write(repo_root / ".cartignore", f"{ignore}\n")
    cartage = make_cartage()

    with cartage.manifest.resolve(tmp_path / "foo") as file_list:
        assert file_list.read_text(encoding="utf-8").splitlines() == [
            "foo/bin/build",
            "foo/bin/cartage",
            "foo/lib/cartage.rb",
        ]


def test_install_default_ignore_existing_file_performs_no_write(make_cartage, repo_root, monkeypatch):
    _write(repo_root / ".cartignore", "custom/\n")
    cartage = make_cartage()
    writes = []
    monkeypatch.setattr(cartage.manifest, "_write_ignore_file", writes.append)

    cartage.manifest.install_default_ignore(None)

    assert writes == []
