"""On-disk bundle layout and bundle-root discovery."""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from scanedeps.config import DEFAULT_AUX_TREES, AuxTree
from scanedeps.errors import BundleRootError, LayoutError
from scanedeps.manifest import MANIFEST_FILENAME


@dataclass(frozen=True, slots=True)
class BundleLayout:
    """``lib/``, ``lib/<plugin_subdir>/`` and the auxiliary trees under *root*."""

    root: Path
    plugin_subdir: str = "sane"
    aux_trees: tuple[AuxTree, ...] = DEFAULT_AUX_TREES

    @property
    def lib_dir(self) -> Path:
        return self.root / "lib"

    @property
    def plugin_dir(self) -> Path:
        return self.lib_dir / self.plugin_subdir

    def aux_destination(self, tree: AuxTree) -> Path:
        return self.root / tree.destination

    def managed_dirs(self) -> tuple[Path, ...]:
        """Top-level directories owned by the bundle, in creation order."""
        names = ["lib"]
        for tree in self.aux_trees:
            top = PurePosixPath(tree.destination).parts[0]
            if top not in names:
                names.append(top)
        return tuple(self.root / name for name in names)

    def reset(self) -> None:
        """Clear every managed directory and recreate the empty layout."""
        try:
            for directory in self.managed_dirs():
                if directory.is_symlink() or directory.is_file():
                    directory.unlink()
                elif directory.exists():
                    shutil.rmtree(directory)
                directory.mkdir(parents=True)
            self.plugin_dir.mkdir(parents=True, exist_ok=True)
            for tree in self.aux_trees:
                self.aux_destination(tree).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise LayoutError(
                "Unable to reset bundle directories.",
                hint="Check permissions on the bundle root.",
                context={"operation": "reset_layout", "root": str(self.root), "error": str(exc)},
            ) from exc


def locate_root(start: str | Path | None = None, *, marker: str = MANIFEST_FILENAME) -> Path:
    """Return the bundle root, verified by the presence of *marker*."""
    candidate = Path.cwd() if start is None else Path(start)
    candidate = candidate.resolve()
    if not (candidate / marker).is_file():
        raise BundleRootError(
            "Could not determine parent folder",
            hint=f"Run from the bundle root or pass --root; `scanedeps init` creates {marker}.",
            context={"operation": "locate_root", "path": str(candidate), "marker": marker},
        )
    return candidate
