from __future__ import annotations

import argparse
import sys
import traceback
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from cartage import __version__
from cartage.foundation.errors import CartageError, CustomExit, QuietExit
from cartage.framework.config import COMPRESSIONS

if TYPE_CHECKING:
    from cartage.framework.runtime import Cartage


def _manifest_check(cartage: "Cartage", args: argparse.Namespace) -> int:
    if not cartage.manifest.check():
        raise QuietExit(1)
    return 0


def _manifest_cartignore(cartage: "Cartage", args: argparse.Namespace) -> int:
    from cartage.plugins.manifest import resolve_ignore_mode

    mode = resolve_ignore_mode(mode=args.mode, force=args.force, merge=args.merge)
    cartage.manifest.install_default_ignore(mode)
    return 0


def _manifest_show(cartage: "Cartage", args: argparse.Namespace) -> int:
    with cartage.manifest.resolve() as file_list:
        print(file_list.read_text(encoding="utf-8"))
    return 0


def _manifest_generate(cartage: "Cartage", args: argparse.Namespace) -> int:
    cartage.manifest.generate()
    return 0


def _pack(cartage: "Cartage", args: argparse.Namespace) -> int:
    from cartage.app.pack import build_package

    skip_check = args.skip_check or cartage.config.section(for_command="pack").get_bool(
        "skip_check", default=False
    )
    if not skip_check and not cartage.manifest.check():
        print()
        raise CustomExit("Manifest.txt is not up-to-date.", 1)

    build_package(cartage)
    return 0


def _metadata(cartage: "Cartage", args: argparse.Namespace) -> int:
    from cartage.app.pack import save_release_metadata

    save_release_metadata(cartage, local=True)
    return 0


def _info_plugins(cartage: "Cartage", args: argparse.Namespace) -> int:
    enabled = cartage.plugins.enabled()
    if not enabled:
        print("No active plug-ins.")
        return 0

    lines = sorted(f"* {plugin.plugin_name()} ({plugin.version()})" for plugin in enabled)
    print("Active Plug-ins:\n")
    print("\n".join(lines))
    return 0


def _save_config(cartage: "Cartage", args: argparse.Namespace) -> int:
    from cartage.foundation.config_io import dump_config

    name = args.output_file
    if name != "-" and not name.endswith(".yml"):
        name = f"{name}.yml"

    data: dict[str, Any] = cartage.config.to_dict()
    data.setdefault("name", cartage.name)
    data.setdefault("root_path", str(cartage.root_path))
    data.setdefault("target", str(cartage.target))
    data.setdefault("timestamp", cartage.timestamp)
    data.setdefault("compression", cartage.compression)
    data["disable_dependency_cache"] = cartage.disable_dependency_cache
    data["dependency_cache_path"] = str(cartage.dependency_cache_path)
    data["quiet"] = bool(cartage.quiet)
    data["verbose"] = bool(cartage.verbose)

    text = dump_config(data)
    if name == "-":
        sys.stdout.write(text)
    else:
        with open(name, "w", encoding="utf-8") as handle:
            handle.write(text)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cartage",
        description="Manage releaseable packages.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-q", "--quiet", action="store_true", help="Silence normal output.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output.")
    parser.add_argument("-T", "--trace", action="store_true", help="Show the traceback when an error occurs.")
    parser.add_argument(
        "-C",
        "--config-file",
        default=None,
        metavar="FILE",
        help="Use this configuration file (default: config/cartage.yml, cartage.yml, or .cartage.yml).",
    )
    parser.add_argument("-n", "--name", default=None, help="The name of the package (default: the repo name).")
    parser.add_argument("-t", "--target", default=None, metavar="PATH", help="Where the final package is written.")
    parser.add_argument(
        "-r", "--root-path", default=None, metavar="PATH", help="The package source root (default: repo root)."
    )
    parser.add_argument("--timestamp", default=None, help="The timestamp used in the package name.")
    parser.add_argument("--compression", default=None, choices=COMPRESSIONS, help="Package compression.")
    parser.add_argument(
        "--disable-dependency-cache", action="store_true", help="Disable the vendored dependency cache."
    )
    parser.add_argument(
        "--dependency-cache-path",
        default=None,
        metavar="PATH",
        help="Where vendored dependencies are cached between builds.",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    manifest = sub.add_parser("manifest", help="Work with the Manifest.txt file")
    manifest.set_defaults(handler=_manifest_check)
    manifest_sub = manifest.add_subparsers(dest="manifest_command")

    check = manifest_sub.add_parser("check", help="Check Manifest.txt against the current repository")
    check.set_defaults(handler=_manifest_check)

    cartignore = manifest_sub.add_parser("cartignore", help="Install or update the .cartignore file")
    cartignore.add_argument("--mode", default=None, choices=("overwrite", "merge"), help="Update mode.")
    cartignore.add_argument(
        "-f", "--force", "--overwrite", dest="force", action="store_true", help="Same as --mode overwrite."
    )
    cartignore.add_argument("-m", "--merge", action="store_true", help="Same as --mode merge.")
    cartignore.set_defaults(handler=_manifest_cartignore)

    show = manifest_sub.add_parser("show", help="Show the files that will be included in the package")
    show.set_defaults(handler=_manifest_show)

    generate = manifest_sub.add_parser(
        "generate", aliases=["update"], help="Generate or update the Manifest.txt file"
    )
    generate.set_defaults(handler=_manifest_generate)

    pack = sub.add_parser("pack", aliases=["build"], help="Create a package based on the Manifest")
    pack.add_argument(
        "--skip-check", action="store_true", help="Do not check Manifest.txt before packaging."
    )
    pack.set_defaults(handler=_pack)

    metadata = sub.add_parser("metadata", help="Create release-metadata.json in the current directory")
    metadata.set_defaults(handler=_metadata)

    info = sub.add_parser("info", aliases=["i"], help="Show information about cartage itself")
    info_sub = info.add_subparsers(dest="info_command", required=True)
    info_plugins = info_sub.add_parser("plugins", help="Show the plug-ins that have been found")
    info_plugins.set_defaults(handler=_info_plugins)

    save = sub.add_parser("save-config", help="Save the computed configuration as a configuration file")
    save.add_argument("output_file", metavar="CONFIG-FILE", help="Destination file, or - for stdout.")
    save.set_defaults(handler=_save_config)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    from cartage.foundation.logging_utils import close_logger, setup_logger
    from cartage.framework.config import CartageConfig
    from cartage.framework.runtime import Cartage

    logger = None
    try:
        config = CartageConfig.load(args.config_file).with_overrides(
            name=args.name,
            target=args.target,
            root_path=args.root_path,
            timestamp=args.timestamp,
            compression=args.compression,
            dependency_cache_path=args.dependency_cache_path,
            quiet=True if args.quiet else None,
            verbose=True if args.verbose else None,
            disable_dependency_cache=True if args.disable_dependency_cache else None,
        )
        logger = setup_logger(verbose=config.verbose, quiet=config.quiet)
        cartage = Cartage(config, logger=logger)
        return int(args.handler(cartage, args))
    except CartageError as exc:
        if not isinstance(exc, QuietExit):
            print(f"error: {exc}", file=sys.stderr)
            if args.trace:
                traceback.print_exc()
        return exc.exit_status
    finally:
        if logger is not None:
            close_logger(logger)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
