import hashlib
from pathlib import Path

import pytest

from conftest import SENTINEL, SYSTEM_LIB
from scanedeps.assembler import assemble_universal
from scanedeps.config import BundleConfig
from scanedeps.errors import InspectionError, ToolExecutionError, ValidationError
from scanedeps.models import DependencyDescriptor
from scanedeps.observability import StructuredLogger
from scanedeps.registry import Registry
from scanedeps.toolchain import InProcessToolchain

LIBUSB = DependencyDescriptor(
    name="libusb",
    version="1.0.24",
    lib_name="libusb",
    target_name="libusb-1.0.dylib",
    fingerprints={"arm64": "a" * 64, "x86_64": "b" * 64},
)
LIBSANE = DependencyDescriptor(
    name="sane-backends",
    version="1.0.32",
    lib_name="libsane",
    target_name="libsane.dylib",
    fingerprints={"arm64": "c" * 64, "x86_64": "d" * 64},
)
USB_REF = f"{SENTINEL}/lib/libusb-1.0.0.dylib"


def _slices(
    toolchain: InProcessToolchain,
    root: Path,
    name: str,
    *,
    install_name: str | None,
    references: list[str],
) -> dict[str, Path]:
    return {
        arch: toolchain.add_slice(
            root / arch / name,
            arch=arch,
            install_name=install_name,
            references=references,
        )
        for arch in ("arm64", "x86_64")
    }


def test_libusb_end_to_end(tmp_path: Path) -> None:
    toolchain = InProcessToolchain()
    registry = Registry(descriptors=(LIBUSB, LIBSANE))
    config = BundleConfig()
    lib_dir = tmp_path / "lib"

    usb = assemble_universal(
        lib_dir / "libusb-1.0.dylib",
        _slices(toolchain, tmp_path / "usb", "libusb-1.0.dylib", install_name=USB_REF, references=[SYSTEM_LIB]),
        rewrite_base="@loader_path",
        toolchain=toolchain,
        registry=registry,
        config=config,
    )
    sane = assemble_universal(
        lib_dir / "libsane.dylib",
        _slices(
            toolchain,
            tmp_path / "sane",
            "libsane.dylib",
            install_name=None,
            references=[USB_REF, SYSTEM_LIB],
        ),
        rewrite_base="@loader_path",
        toolchain=toolchain,
        registry=registry,
        config=config,
    )

    usb_binary = toolchain.binary(usb.path)
    assert usb.architectures == ("arm64", "x86_64")
    assert usb_binary.install_names == {"@rpath/libusb-1.0.dylib"}
    assert usb_binary.signed is True

    sane_binary = toolchain.binary(sane.path)
    assert [item.references for item in sane_binary.slices] == [
        ["@loader_path/libusb-1.0.dylib", SYSTEM_LIB],
        ["@loader_path/libusb-1.0.dylib", SYSTEM_LIB],
    ]
    assert [d.classification for d in sane.applied] == ["foreign-dependency"]
    assert sane.sha256 == hashlib.sha256(sane.path.read_bytes()).hexdigest()


def test_assembly_runs_stages_in_order(tmp_path: Path) -> None:
    toolchain = InProcessToolchain()
    dest = tmp_path / "lib" / "libusb-1.0.dylib"

    assemble_universal(
        dest,
        _slices(toolchain, tmp_path, "libusb-1.0.dylib", install_name=USB_REF, references=[]),
        rewrite_base="@loader_path",
        toolchain=toolchain,
        registry=Registry(descriptors=(LIBUSB,)),
        config=BundleConfig(),
    )

    assert toolchain.operations() == [
        "merge_architectures",
        "list_architectures",
        "describe_references",
        "set_identity",
        "sign_adhoc",
    ]


def test_reassembling_patched_output_changes_nothing(tmp_path: Path) -> None:
    toolchain = InProcessToolchain()
    registry = Registry(descriptors=(LIBUSB,))
    first = assemble_universal(
        tmp_path / "first" / "libusb-1.0.dylib",
        _slices(toolchain, tmp_path, "libusb-1.0.dylib", install_name=USB_REF, references=[]),
        rewrite_base="@loader_path",
        toolchain=toolchain,
        registry=registry,
        config=BundleConfig(),
    )
    toolchain.calls.clear()

    decisions = assemble_universal(
        tmp_path / "second" / "libusb-1.0.dylib",
        {
            "arm64": toolchain.add_slice(
                tmp_path / "again" / "arm64" / "libusb-1.0.dylib",
                arch="arm64",
                install_name=toolchain.binary(first.path).slices[0].install_name,
            ),
            "x86_64": toolchain.add_slice(
                tmp_path / "again" / "x86_64" / "libusb-1.0.dylib",
                arch="x86_64",
                install_name=toolchain.binary(first.path).slices[1].install_name,
            ),
        },
        rewrite_base="@loader_path",
        toolchain=toolchain,
        registry=registry,
        config=BundleConfig(),
    ).decisions

    assert {decision.classification for decision in decisions} == {"ignore"}
    assert "set_identity" not in toolchain.operations()
    assert "change_reference" not in toolchain.operations()


def test_missing_slice_fails_without_output(tmp_path: Path) -> None:
    toolchain = InProcessToolchain()
    slices = _slices(toolchain, tmp_path, "libusb-1.0.dylib", install_name=USB_REF, references=[])
    slices["x86_64"].unlink()
    dest = tmp_path / "lib" / "libusb-1.0.dylib"

    with pytest.raises(ValidationError) as excinfo:
        assemble_universal(
            dest,
            slices,
            rewrite_base="@loader_path",
            toolchain=toolchain,
            registry=Registry(descriptors=(LIBUSB,)),
            config=BundleConfig(),
        )

    assert "x86_64" in excinfo.value.context["missing"]
    assert not dest.exists()
    assert toolchain.calls == []


@pytest.mark.parametrize("archs", [("arm64",), ("arm64", "x86_64", "arm64e")])
def test_slice_set_must_match_configured_architectures(tmp_path: Path, archs: tuple[str, ...]) -> None:
    toolchain = InProcessToolchain()
    slices = {
        arch: toolchain.add_slice(tmp_path / arch / "libusb-1.0.dylib", arch=arch)
        for arch in archs
    }
    dest = tmp_path / "lib" / "libusb-1.0.dylib"

    with pytest.raises(ValidationError):
        assemble_universal(
            dest,
            slices,
            rewrite_base="@loader_path",
            toolchain=toolchain,
            registry=Registry(descriptors=(LIBUSB,)),
            config=BundleConfig(),
        )

    assert not dest.exists()


def test_mislabelled_slice_fails_in_merge(tmp_path: Path) -> None:
    toolchain = InProcessToolchain()
    slices = {
        "arm64": toolchain.add_slice(tmp_path / "a" / "libusb-1.0.dylib", arch="arm64"),
        "x86_64": toolchain.add_slice(tmp_path / "b" / "libusb-1.0.dylib", arch="arm64"),
    }

    with pytest.raises(ToolExecutionError) as excinfo:
        assemble_universal(
            tmp_path / "lib" / "libusb-1.0.dylib",
            slices,
            rewrite_base="@loader_path",
            toolchain=toolchain,
            registry=Registry(descriptors=(LIBUSB,)),
            config=BundleConfig(),
        )

    assert "does not match" in excinfo.value.context["output"]


def test_failure_after_merge_leaves_partial_artifact(tmp_path: Path) -> None:
    toolchain = InProcessToolchain()
    toolchain.fail_on.add("sign_adhoc")
    dest = tmp_path / "lib" / "libusb-1.0.dylib"

    with pytest.raises(ToolExecutionError):
        assemble_universal(
            dest,
            _slices(toolchain, tmp_path, "libusb-1.0.dylib", install_name=USB_REF, references=[]),
            rewrite_base="@loader_path",
            toolchain=toolchain,
            registry=Registry(descriptors=(LIBUSB,)),
            config=BundleConfig(),
        )

    assert dest.exists()
    assert toolchain.binary(dest).signed is False


def test_unexpected_listing_aborts_before_patching(tmp_path: Path) -> None:
    toolchain = InProcessToolchain()
    dest = tmp_path / "lib" / "libusb-1.0.dylib"
    toolchain.raw_listings[dest.absolute()] = ["garbage output from otool"]

    with pytest.raises(InspectionError):
        assemble_universal(
            dest,
            _slices(toolchain, tmp_path, "libusb-1.0.dylib", install_name=USB_REF, references=[]),
            rewrite_base="@loader_path",
            toolchain=toolchain,
            registry=Registry(descriptors=(LIBUSB,)),
            config=BundleConfig(),
        )

    assert "set_identity" not in toolchain.operations()


def test_assembly_logs_applied_rewrites(tmp_path: Path) -> None:
    toolchain = InProcessToolchain()
    logger = StructuredLogger()

    assemble_universal(
        tmp_path / "lib" / "libusb-1.0.dylib",
        _slices(toolchain, tmp_path, "libusb-1.0.dylib", install_name=USB_REF, references=[]),
        rewrite_base="@loader_path",
        toolchain=toolchain,
        registry=Registry(descriptors=(LIBUSB,)),
        config=BundleConfig(),
        logger=logger,
        dependency="libusb",
    )

    (record,) = logger.records_for_dependency("libusb")
    assert record["tool"] == "inprocess"
    assert record["extra"]["rewrites"] == {USB_REF: "@rpath/libusb-1.0.dylib"}
