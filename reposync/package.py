"""Packages: working copies described by a package.json manifest."""

import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .config import Config
from .git_sync.repository import Repository
from .git_sync.runner import CommandResult, CommandRunner, LogSink

MANIFEST_NAME = "package.json"


class Package:
    """
    A package directory, its manifest and the repository it is cloned from.

    The manifest may name ``repoURL`` and ``branch`` so a missing package can
    be cloned; everything else is read as-is from package.json.
    """

    def __init__(
        self,
        directory: Union[str, Path],
        config: Optional[Config] = None,
        package_config: Optional[Dict[str, Any]] = None,
        log: Optional[LogSink] = None,
        runner: Optional[CommandRunner] = None,
    ):
        self.directory = Path(directory)
        self.config = config or Config()
        self.package_config: Dict[str, Any] = {
            "name": "",
            "repoURL": "",
            "branch": self.config.default_branch,
        }
        self.package_config.update(package_config or {})
        self.log = log if log is not None else LogSink()
        self.runner = runner or CommandRunner()
        self.logger = logging.getLogger('reposync.package')

    def __repr__(self) -> str:
        return f"Package({self.name or str(self.directory)!r})"

    @property
    def name(self) -> str:
        return self.package_config.get("name") or ""

    @property
    def version(self) -> Optional[str]:
        return self.package_config.get("version") or None

    @property
    def branch(self) -> str:
        return self.package_config.get("branch") or self.config.default_branch

    @property
    def dependencies(self) -> Dict[str, str]:
        """Runtime and development dependencies merged; development entries win."""
        merged = dict(self.package_config.get("dependencies") or {})
        merged.update(self.package_config.get("devDependencies") or {})
        return merged

    def read_config(self) -> "Package":
        """Merge package.json into the package config; a bad manifest only warns."""
        manifest = self.directory / MANIFEST_NAME
        try:
            with open(manifest, 'r', encoding='utf-8') as f:
                content = f.read()
            if content.strip():
                self.package_config.update(json.loads(content))
        except (OSError, ValueError) as e:
            self.logger.warning(f"Error when reading package config for {self.directory}: {e}")
        return self

    def exists(self) -> bool:
        return self.directory.exists()

    def repo(self) -> Repository:
        return Repository(self.directory, log=self.log, runner=self.runner, config=self.config)

    def ensure(self) -> "Package":
        """Clone the package from its repoURL unless it is present already."""
        if not self.exists():
            self.logger.info(f"Cloning {self.name or self.directory} from {self.package_config.get('repoURL')}")
            self.repo().clone(self.package_config.get("repoURL", ""), self.branch)
        return self

    def update(self) -> "Package":
        """Safe update of the package's branch; missing packages are left alone."""
        if self.exists():
            self.repo().interactively_update(self.branch)
        return self

    def find_dependencies_in(self, packages: Iterable["Package"]) -> List["Package"]:
        deps = self.dependencies
        return [p for p in packages if p.name in deps]

    def symlink_to(self, local_dir: Union[str, Path], to_package: "Package") -> Path:
        """
        Link this package into ``to_package``.

        Creates ``to_package.directory/local_dir/<name>`` pointing at this
        package's directory, replacing whatever was there before.

        Returns:
            Path of the created link
        """
        target_dir = to_package.directory / local_dir
        target_dir.mkdir(parents=True, exist_ok=True)
        link = target_dir / self.name

        if link.is_symlink() or link.is_file():
            link.unlink()
        elif link.is_dir():
            shutil.rmtree(link)

        os.symlink(str(self.directory.resolve()), str(link), target_is_directory=True)
        self.logger.debug(f"Linked {link} -> {self.directory}")
        return link

    def npm_install(self) -> CommandResult:
        return self.runner.run(["npm", "install"], cwd=self.directory, log_sink=self.log)


def discover_packages(
    root: Union[str, Path],
    config: Optional[Config] = None,
    log: Optional[LogSink] = None,
    runner: Optional[CommandRunner] = None,
) -> List[Package]:
    """
    Packages directly below ``root``, with their manifests read.

    Only directories holding a package.json count; results are sorted by
    directory name.
    """
    root = Path(root)
    if not root.is_dir():
        return []

    packages = []
    for entry in sorted(root.iterdir()):
        if entry.is_dir() and (entry / MANIFEST_NAME).is_file():
            packages.append(Package(entry, config=config, log=log, runner=runner).read_config())
    return packages
