"""Create the release package as a tarball.

Offers `build_package`; requests `pre_build_tarball` and `post_build_tarball`
around the `tar` call.
"""

from __future__ import annotations

from pathlib import Path

from cartage.framework.plugin import Plugin, register_plugin


@register_plugin
class BuildTarball(Plugin):
    features = frozenset({"build_package"})

    def build_package(self) -> None:
        self.cartage.plugins.request("pre_build_tarball")
        self._run_command()
        self.cartage.plugins.request("post_build_tarball")

    @property
    def package_name(self) -> Path:
        return Path(f"{self.cartage.final_name}.tar{self.cartage.tar_compression_extension}")

    def _run_command(self) -> None:
        self.package_name.parent.mkdir(parents=True, exist_ok=True)
        self.cartage.run(
            [
                "tar",
                f"cf{self.cartage.tar_compression_flag}",
                str(self.package_name),
                "-C",
                str(self.cartage.tmp_path),
                self.cartage.name,
            ]
        )
