from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Any, Iterable

from cartage.foundation import process
from cartage.framework.runtime import Cartage

RELEASE_METADATA_FILE = "release-metadata.json"


def build_package(cartage: Cartage) -> None:
    """
    Create the release package(s).

    Requests `vendor_dependencies` (and its `path`), then `pre_build_package`,
    `build_package`, and `post_build_package` from the plug-ins.
    """

    # One timestamp for the whole run.
    cartage.timestamp
    prepare_work_area(cartage)
    restore_modified_files(cartage)
    save_release_metadata(cartage)
    vendor_dependencies(cartage)
    request_build_package(cartage)


def prepare_work_area(cartage: Cartage) -> None:
    """Copy the resolved manifest from `root_path` into a clean `work_path`."""

    cartage.display("Preparing cartage work area...")

    work_path = cartage.work_path
    if work_path.exists():
        shutil.rmtree(work_path)
    work_path.mkdir(parents=True)

    root_path = cartage.root_path
    with cartage.manifest.resolve(root_path) as file_list:
        process.pipe_commands(
            ["tar", "cf", "-", "-C", str(root_path.parent), "-h", "-T", str(file_list)],
            ["tar", "xf", "-", "-C", str(work_path), "--strip-components=1"],
            logger=cartage.logger,
        )


def restore_modified_files(cartage: Cartage) -> None:
    """Replace locally modified files in the work copy with their committed content."""

    status = cartage.capture(["git", "status", "--porcelain", "-z"], cwd=cartage.root_path)
    records = iter(status.split("\0"))
    for record in records:
        if len(record) < 4:
            continue
        code, filename = record[:2], record[3:]
        # Renames and copies carry their source path as the next record.
        if code[0] in "RC":
            next(records, None)
        # Only paths that exist in the release commit can be restored.
        if code in ("??", "!!") or code[0] in "ARC":
            continue
        restore_modified_file(cartage, filename)


def restore_modified_file(cartage: Cartage, filename: str) -> None:
    target = cartage.work_path / filename
    # Modified files that the manifest excludes are not in the work copy.
    if not target.exists():
        return
    target.write_bytes(cartage.committed_content(filename))


def save_release_metadata(cartage: Cartage, *, local: bool = False) -> list[Path]:
    """
    Write the release metadata JSON.

    A package run writes it into the work copy and next to the final package.
    With `local=True` only `./release-metadata.json` is written.
    """

    cartage.display("Saving release metadata...")
    payload = json.dumps(cartage.release_metadata, separators=(",", ":"))

    if local:
        destinations = [Path.cwd() / RELEASE_METADATA_FILE]
    else:
        destinations = [cartage.work_path / RELEASE_METADATA_FILE, cartage.final_release_metadata_json]

    for destination in destinations:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(payload, encoding="utf-8")
    return destinations


def _flatten(values: Iterable[Any]) -> list[str]:
    flat: list[str] = []
    for value in values:
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            flat.extend(_flatten(value))
        else:
            flat.append(str(value))
    return flat


def vendor_dependencies(cartage: Cartage) -> None:
    extract_dependency_cache(cartage)
    cartage.plugins.request("vendor_dependencies")
    create_dependency_cache(cartage, _flatten(cartage.plugins.request_map("vendor_dependencies", "path")))


def extract_dependency_cache(cartage: Cartage) -> None:
    if cartage.disable_dependency_cache or not cartage.dependency_cache.exists():
        return
    cartage.run(
        [
            "tar",
            f"xf{cartage.tar_compression_flag}",
            str(cartage.dependency_cache),
            "-C",
            str(cartage.work_path),
        ]
    )


def create_dependency_cache(cartage: Cartage, paths: list[str]) -> None:
    if cartage.disable_dependency_cache or not paths:
        return
    cartage.dependency_cache.parent.mkdir(parents=True, exist_ok=True)
    cartage.run(
        [
            "tar",
            f"cf{cartage.tar_compression_flag}",
            str(cartage.dependency_cache),
            "-C",
            str(cartage.work_path),
            *paths,
        ]
    )


def request_build_package(cartage: Cartage) -> None:
    cartage.plugins.request("pre_build_package")
    cartage.plugins.request("build_package")
    cartage.plugins.request("post_build_package")
