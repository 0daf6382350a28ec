"""Bundle pipeline orchestration.

Runs ``init -> fetch_all -> merge_roots -> merge_plugins -> copy_aux -> done``
strictly in order. Any error moves the pipeline to the absorbing ``failed``
state and propagates; nothing after the failing step runs, so a partially
built bundle is never reported as complete.
"""

from __future__ import annotations

import tempfile
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path

from scanedeps.assembler import assemble_universal
from scanedeps.config import BundleConfig
from scanedeps.errors import ValidationError
from scanedeps.fetch import Fetcher, HttpFetcher, StagingArea
from scanedeps.layout import BundleLayout
from scanedeps.manifest import Manifest
from scanedeps.models import (
    BundleResult,
    DependencyDescriptor,
    PipelineState,
    StagedArtifact,
    UniversalBinary,
)
from scanedeps.observability import StructuredLogger
from scanedeps.registry import DEFAULT_REGISTRY, Registry
from scanedeps.toolchain.base import Toolchain

TRANSITIONS: dict[PipelineState, tuple[PipelineState, ...]] = {
    PipelineState.INIT: (PipelineState.FETCH_ALL,),
    PipelineState.FETCH_ALL: (PipelineState.MERGE_ROOTS,),
    PipelineState.MERGE_ROOTS: (PipelineState.MERGE_PLUGINS,),
    PipelineState.MERGE_PLUGINS: (PipelineState.COPY_AUX,),
    PipelineState.COPY_AUX: (PipelineState.DONE,),
    PipelineState.DONE: (),
    PipelineState.FAILED: (),
}

DEFAULT_STAGING_ROOT = Path(tempfile.gettempdir()) / "scanedeps"


@dataclass(slots=True)
class BundlePipeline:
    layout: BundleLayout
    staging: StagingArea
    toolchain: Toolchain
    fetcher: Fetcher
    registry: Registry = DEFAULT_REGISTRY
    config: BundleConfig = field(default_factory=BundleConfig)
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    state: PipelineState = PipelineState.INIT
    staged: dict[tuple[str, str], StagedArtifact] = field(default_factory=dict)

    @classmethod
    def from_manifest(
        cls,
        root: Path,
        manifest: Manifest,
        *,
        toolchain: Toolchain,
        fetcher: Fetcher | None = None,
        staging_root: Path | None = None,
        logger: StructuredLogger | None = None,
    ) -> BundlePipeline:
        config = manifest.config
        if fetcher is None:
            fetcher = HttpFetcher(
                url_template=config.url_template,
                auth_token=config.auth_token,
                timeout=config.fetch_timeout,
            )
        return cls(
            layout=BundleLayout(
                root=root,
                plugin_subdir=config.plugin_subdir,
                aux_trees=config.aux_trees,
            ),
            staging=StagingArea(root=staging_root or DEFAULT_STAGING_ROOT),
            toolchain=toolchain,
            fetcher=fetcher,
            registry=manifest.registry,
            config=config,
            logger=logger or StructuredLogger(),
        )

    def run(self) -> BundleResult:
        if self.state is not PipelineState.INIT:
            raise ValidationError(
                "Pipeline can only run once from the init state.",
                hint="Create a new pipeline to re-run the bundle from scratch.",
                context={"operation": "run", "state": self.state.value},
            )
        result = BundleResult(root=self.layout.root)
        try:
            self.config.validate(self.registry)
            self.toolchain.prepare()
            self.layout.reset()

            self._advance(PipelineState.FETCH_ALL)
            self._fetch_all()

            self._advance(PipelineState.MERGE_ROOTS)
            result.binaries.extend(self._merge_roots())

            self._advance(PipelineState.MERGE_PLUGINS)
            result.binaries.extend(self._merge_plugins())

            self._advance(PipelineState.COPY_AUX)
            result.aux_trees.extend(self._copy_aux())

            self._advance(PipelineState.DONE)
        except Exception:
            failed_in = self.state
            self.state = PipelineState.FAILED
            self.logger.log(
                operation="pipeline_failed",
                stage=failed_in.value,
                level="error",
                message=f"Bundle failed during {failed_in.value}.",
            )
            raise
        finally:
            result.state = self.state
            result.logs = list(self.logger.records)
        return result

    def _advance(self, target: PipelineState) -> None:
        if target not in TRANSITIONS[self.state]:
            raise ValidationError(
                "Illegal pipeline state transition.",
                context={"from": self.state.value, "to": target.value},
            )
        self.state = target
        self.logger.log(
            operation="state_transition",
            stage=target.value,
            level="debug",
            message=f"Entering {target.value}.",
        )

    def _fetch_all(self) -> None:
        pairs = [
            (descriptor, arch)
            for descriptor in self.registry
            for arch in self.config.architectures
        ]
        if self.config.fetch_workers == 1:
            for descriptor, arch in pairs:
                self._announce_fetch(descriptor, arch)
                self._store(self.fetcher.fetch(descriptor, arch, self.staging))
            return

        # Each (dependency, arch) pair writes to its own staging directory.
        with ThreadPoolExecutor(max_workers=self.config.fetch_workers) as executor:
            futures: list[Future[StagedArtifact]] = []
            for descriptor, arch in pairs:
                self._announce_fetch(descriptor, arch)
                futures.append(executor.submit(self.fetcher.fetch, descriptor, arch, self.staging))
            try:
                for future in futures:
                    self._store(future.result())
            except Exception:
                for future in futures:
                    future.cancel()
                raise

    def _announce_fetch(self, descriptor: DependencyDescriptor, arch: str) -> None:
        self.logger.log(
            operation="fetch",
            dependency=descriptor.name,
            arch=arch,
            stage=PipelineState.FETCH_ALL.value,
            message=f"Fetching {descriptor.name} {arch}...",
        )

    def _store(self, staged: StagedArtifact) -> None:
        self.staged[(staged.descriptor.name, staged.arch)] = staged

    def _staged_for(self, descriptor: DependencyDescriptor, arch: str) -> StagedArtifact:
        try:
            return self.staged[(descriptor.name, arch)]
        except KeyError as exc:
            raise ValidationError(
                "Dependency was not fetched for this architecture.",
                context={"dependency": descriptor.name, "arch": arch},
            ) from exc

    def _merge_roots(self) -> list[UniversalBinary]:
        outputs: list[UniversalBinary] = []
        for descriptor in self.registry:
            self.logger.log(
                operation="assemble",
                dependency=descriptor.name,
                stage=PipelineState.MERGE_ROOTS.value,
                message=f"Creating {descriptor.target_name}...",
            )
            slices = {
                arch: self._staged_for(descriptor, arch).lib_dir / descriptor.target_name
                for arch in self.config.architectures
            }
            outputs.append(
                assemble_universal(
                    self.layout.lib_dir / descriptor.target_name,
                    slices,
                    rewrite_base=self.config.root_rewrite_base,
                    toolchain=self.toolchain,
                    registry=self.registry,
                    config=self.config,
                    logger=self.logger,
                    dependency=descriptor.name,
                )
            )
        return outputs

    def plugin_names(self) -> list[str]:
        """Loadable component filenames staged for the auxiliary architecture."""
        owner = self.registry.get(self.config.plugin_owner)
        source_dir = self._plugin_dir(owner, self.config.resolved_aux_arch)
        if not source_dir.is_dir():
            raise ValidationError(
                "Staged artifact has no loadable component directory.",
                context={"dependency": owner.name, "path": str(source_dir)},
            )
        return sorted(
            path.name
            for path in source_dir.iterdir()
            if fnmatchcase(path.name, self.config.plugin_pattern)
        )

    def _plugin_dir(self, owner: DependencyDescriptor, arch: str) -> Path:
        return self._staged_for(owner, arch).lib_dir / self.config.plugin_subdir

    def _merge_plugins(self) -> list[UniversalBinary]:
        owner = self.registry.get(self.config.plugin_owner)
        outputs: list[UniversalBinary] = []
        for name in self.plugin_names():
            self.logger.log(
                operation="assemble",
                dependency=owner.name,
                stage=PipelineState.MERGE_PLUGINS.value,
                message=f"Creating {name}...",
            )
            slices = {
                arch: self._plugin_dir(owner, arch) / name for arch in self.config.architectures
            }
            outputs.append(
                assemble_universal(
                    self.layout.plugin_dir / name,
                    slices,
                    rewrite_base=self.config.plugin_rewrite_base,
                    toolchain=self.toolchain,
                    registry=self.registry,
                    config=self.config,
                    logger=self.logger,
                    dependency=owner.name,
                )
            )
        return outputs

    def _copy_aux(self) -> list[Path]:
        owner = self.registry.get(self.config.plugin_owner)
        staged = self._staged_for(owner, self.config.resolved_aux_arch)
        copied: list[Path] = []
        for tree in self.config.aux_trees:
            destination = self.layout.aux_destination(tree)
            self.logger.log(
                operation="mirror_tree",
                dependency=owner.name,
                stage=PipelineState.COPY_AUX.value,
                message=f"Copying {tree.destination} files...",
            )
            self.toolchain.mirror_tree(staged.prefix / tree.source, destination)
            copied.append(destination)
        return copied


__all__ = ["BundlePipeline", "DEFAULT_STAGING_ROOT", "TRANSITIONS"]
