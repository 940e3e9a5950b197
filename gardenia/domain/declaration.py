"""
Parse the desired-bundle declaration into a flat list of bundles.

The declaration is a nested structure of objects, arrays and
``"owner/repo"`` strings::

    {
      "pack/default/start": ["tpope/vim-surround", "tpope/vim-repeat"],
      "pack/lang": {"opt": "fatih/vim-go"}
    }

Object keys along the path to a leaf, joined with '/', give the install
subdirectory. The raw data is first converted into a small tree of
``Leaf`` / ``Sequence`` / ``Named`` nodes and then flattened.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Tuple, Union

import yaml

from gardenia.domain.errors import DeclarationError
from gardenia.domain.models import BundleDescriptor, check_subdir

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


@dataclass(frozen=True)
class Leaf:
    owner_repo: str


@dataclass(frozen=True)
class Sequence:
    children: Tuple["Node", ...]


@dataclass(frozen=True)
class Named:
    key: str
    child: "Node"


Node = Union[Leaf, Sequence, Named]


def build_tree(data: Any) -> Node:
    """
    Convert decoded JSON/YAML data into a declaration tree.

    Objects become a Sequence of Named nodes, preserving key order.
    """
    if isinstance(data, str):
        return Leaf(data)
    if isinstance(data, list):
        return Sequence(tuple(build_tree(item) for item in data))
    if isinstance(data, dict):
        children = []
        for key, value in data.items():
            if not isinstance(key, str):
                raise DeclarationError(f"invalid key [{key!r}]")
            children.append(Named(key, build_tree(value)))
        return Sequence(tuple(children))
    raise DeclarationError(f"invalid content [{data!r}]")


def _join(root: str, key: str) -> str:
    try:
        check_subdir(key)
    except ValueError as e:
        raise DeclarationError(str(e)) from e
    return f"{root}/{key}" if root else key


def flatten(node: Node, root: str = "") -> List[BundleDescriptor]:
    """Flatten a declaration tree into bundles, depth first."""
    if isinstance(node, Leaf):
        try:
            return [BundleDescriptor.parse(node.owner_repo, root)]
        except ValueError as e:
            raise DeclarationError(str(e)) from e
    if isinstance(node, Named):
        return flatten(node.child, _join(root, node.key))
    bundles: List[BundleDescriptor] = []
    for child in node.children:
        bundles.extend(flatten(child, root))
    return bundles


def parse_declaration(data: Any) -> List[BundleDescriptor]:
    return flatten(build_tree(data))


def load_declaration(path: Path) -> List[BundleDescriptor]:
    """
    Read and flatten a declaration file.

    Files ending in .yaml/.yml are read with PyYAML, everything else as JSON.

    Raises:
        DeclarationError: if the file is missing, unreadable or malformed.
    """
    if not path.is_file():
        raise DeclarationError(f"declaration file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DeclarationError(f"cannot read {path}: {e}") from e

    try:
        if path.suffix.lower() in YAML_SUFFIXES:
            data = yaml.safe_load(content)
        else:
            data = json.loads(content)
    except (ValueError, yaml.YAMLError) as e:
        raise DeclarationError(f"{path}: {e}") from e

    bundles = parse_declaration(data)
    logger.debug(f"Loaded {len(bundles)} bundles from {path}")
    return bundles
