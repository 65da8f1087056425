"""
Manifest discovery.

Scans the fixed manifest collections for Assets.json files and loads each
one into a list of asset group declarations.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from assetpipe.core.utils import MANIFEST_FILENAME, MANIFEST_ROOTS, get_web_root, log
from assetpipe.build.errors import ManifestLoadError
from assetpipe.build.models import AssetGroupDeclaration


def find_manifests(project_root: Path) -> list[Path]:
    """Return manifest paths under {Core,Modules,Themes}/*/Assets.json.

    Collections are scanned in fixed order; manifests within a collection are
    sorted by path so repeated scans agree.
    """
    web_root = get_web_root(project_root)
    manifests: list[Path] = []
    for collection in MANIFEST_ROOTS:
        collection_dir = web_root / collection
        if not collection_dir.is_dir():
            log.dim(f"No {collection} directory at {collection_dir}")
            continue
        manifests.extend(sorted(collection_dir.glob(f"*/{MANIFEST_FILENAME}")))
    return manifests


def load_manifest(manifest_path: Path) -> list[AssetGroupDeclaration]:
    """Parse one manifest into declarations.

    Raises:
        ManifestLoadError: the file is unreadable, not JSON, not a list, or
            an entry is missing required fields.
    """
    try:
        data = json.loads(manifest_path.read_text(encoding="utf-8-sig"))
    except OSError as e:
        raise ManifestLoadError(manifest_path, str(e)) from e
    except json.JSONDecodeError as e:
        raise ManifestLoadError(manifest_path, f"invalid JSON ({e})") from e

    if not isinstance(data, list):
        raise ManifestLoadError(manifest_path, "expected a JSON array of asset groups")

    declarations = []
    for index, entry in enumerate(data):
        try:
            declarations.append(AssetGroupDeclaration.model_validate(entry))
        except ValidationError as e:
            raise ManifestLoadError(manifest_path, f"asset group #{index}: {e}") from e
    return declarations


def discover(project_root: Path) -> list[tuple[AssetGroupDeclaration, Path]]:
    """Load every manifest and flatten to (declaration, manifest_path) pairs.

    A single malformed manifest fails the whole pass.
    """
    pairs: list[tuple[AssetGroupDeclaration, Path]] = []
    for manifest_path in find_manifests(project_root.resolve()):
        declarations = load_manifest(manifest_path)
        log.dim(f"{manifest_path}: {len(declarations)} asset group(s)")
        pairs.extend((declaration, manifest_path) for declaration in declarations)
    return pairs
