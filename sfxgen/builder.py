from __future__ import annotations

"""Turn an assembled bundle into a runnable artifact.

The artifact is a zipapp: a fixed ``__main__.py``, the extraction-side
modules of this package copied verbatim, and the bundle as a resource.
Nothing is generated at build time beyond the staging copy.
"""

import logging
import os
import shutil
import tempfile
import zipapp
from pathlib import Path

from .constants import (
    ARTIFACT_INTERPRETER,
    ARTIFACT_PREFIX,
    ARTIFACT_SUFFIX,
    BUNDLE_RESOURCE,
    BUNDLE_SUFFIX,
)


log = logging.getLogger(__name__)

# Modules needed at extraction time; generation-only modules stay out.
RUNTIME_MODULES = (
    "__init__.py",
    "constants.py",
    "errors.py",
    "pathutil.py",
    "tlv.py",
    "challenge.py",
    "bundle.py",
    "keyderive.py",
    "cipher.py",
    "container.py",
    "extractor.py",
    "prompts.py",
    "stub.py",
)

_MAIN_TEMPLATE = """\
import os
import sys

from sfxgen.stub import main

sys.exit(main(os.path.dirname(os.path.abspath(__file__))))
"""


def artifact_stem(artifact_name: str) -> str:
    stem = os.path.splitext(artifact_name)[0] or artifact_name
    return stem or "bundle"


def artifact_filename(artifact_name: str) -> str:
    return f"{ARTIFACT_PREFIX}{artifact_stem(artifact_name)}{ARTIFACT_SUFFIX}"


def bundle_filename(artifact_name: str) -> str:
    return f"{artifact_stem(artifact_name)}{BUNDLE_SUFFIX}"


def write_bundle_file(bundle_bytes: bytes, output_dir: str, artifact_name: str) -> str:
    os.makedirs(output_dir, exist_ok=True)
    out = os.path.join(output_dir, bundle_filename(artifact_name))
    with open(out, "wb") as fh:
        fh.write(bundle_bytes)
    return out


def build_artifact(bundle_bytes: bytes, output_dir: str, artifact_name: str) -> str:
    """Write ``SelfExtractor_<stem>.pyz`` into ``output_dir`` and return its path."""
    os.makedirs(output_dir, exist_ok=True)
    target = os.path.join(output_dir, artifact_filename(artifact_name))
    pkg_src = Path(__file__).resolve().parent
    with tempfile.TemporaryDirectory(prefix="sfxgen-") as staging:
        pkg_dst = Path(staging) / "sfxgen"
        pkg_dst.mkdir()
        for name in RUNTIME_MODULES:
            shutil.copyfile(pkg_src / name, pkg_dst / name)
        (Path(staging) / "__main__.py").write_text(_MAIN_TEMPLATE, encoding="utf-8")
        (Path(staging) / BUNDLE_RESOURCE).write_bytes(bundle_bytes)
        zipapp.create_archive(staging, target=target, interpreter=ARTIFACT_INTERPRETER, compressed=True)
    log.debug("built artifact %s (%d byte bundle)", target, len(bundle_bytes))
    return target
