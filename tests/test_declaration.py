"""Tests for declaration parsing and flattening."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from gardenia.domain.declaration import (
    Leaf,
    Named,
    Sequence,
    build_tree,
    flatten,
    load_declaration,
    parse_declaration,
)
from gardenia.domain.errors import DeclarationError
from gardenia.domain.models import BundleDescriptor


def _pairs(bundles: list[BundleDescriptor]) -> list[tuple[str, str]]:
    return [(b.install_subdir, b.identity) for b in bundles]


class TestBuildTree:
    """Tests for converting raw data into the tagged tree."""

    def test_objects_become_named_children(self) -> None:
        tree = build_tree({"a": "o/r", "b": ["o/s"]})

        assert tree == Sequence((
            Named("a", Leaf("o/r")),
            Named("b", Sequence((Leaf("o/s"),))),
        ))

    @pytest.mark.parametrize("value", [1, 2.5, True, None])
    def test_rejects_non_string_scalars(self, value: object) -> None:
        with pytest.raises(DeclarationError, match="invalid content"):
            build_tree({"start": [value]})


class TestFlatten:
    """Tests for turning the tree into bundles."""

    def test_nested_keys_join_with_slash(self) -> None:
        bundles = parse_declaration({
            "pack": {
                "default": {"start": ["tpope/vim-surround", "tpope/vim-repeat"]},
                "lang": {"opt": "fatih/vim-go"},
            }
        })

        assert _pairs(bundles) == [
            ("pack/default/start", "tpope/vim-surround"),
            ("pack/default/start", "tpope/vim-repeat"),
            ("pack/lang/opt", "fatih/vim-go"),
        ]

    def test_root_leaf_has_empty_subdir(self) -> None:
        assert _pairs(parse_declaration("junegunn/fzf")) == [("", "junegunn/fzf")]

    def test_keys_containing_slashes(self) -> None:
        bundles = parse_declaration({"pack/bundle/start": ["a/b"]})
        assert _pairs(bundles) == [("pack/bundle/start", "a/b")]

    def test_same_repo_under_two_subdirs(self) -> None:
        bundles = parse_declaration({"x": "a/b", "y": "a/b"})
        assert _pairs(bundles) == [("x", "a/b"), ("y", "a/b")]

    def test_nested_arrays(self) -> None:
        bundles = flatten(Named("s", Sequence((Sequence((Leaf("a/b"),)), Leaf("c/d")))))
        assert _pairs(bundles) == [("s", "a/b"), ("s", "c/d")]

    @pytest.mark.parametrize("key", ["/abs/dir", "..", "pack/../../etc"])
    def test_keys_leaving_the_install_root_are_fatal(self, key: str) -> None:
        with pytest.raises(DeclarationError, match="install directory"):
            parse_declaration({"pack": {key: ["a/b"]}})

    def test_repo_named_dot_dot_is_fatal(self) -> None:
        with pytest.raises(DeclarationError, match="invalid owner or repository name"):
            parse_declaration({"start": ["owner/.."]})

    def test_malformed_leaf_is_fatal(self) -> None:
        with pytest.raises(DeclarationError, match="owner/:repo"):
            parse_declaration({"start": ["tpope/vim-surround", "vim-repeat"]})


class TestLoadDeclaration:
    """Tests for reading declaration files."""

    def test_loads_json(self, tmp_path: Path) -> None:
        path = tmp_path / "gardenia.json"
        path.write_text(json.dumps({"pack/start": ["a/b"]}), encoding="utf-8")

        assert _pairs(load_declaration(path)) == [("pack/start", "a/b")]

    def test_loads_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "gardenia.yaml"
        path.write_text("pack:\n  start:\n    - a/b\n    - c/d\n", encoding="utf-8")

        assert _pairs(load_declaration(path)) == [("pack/start", "a/b"), ("pack/start", "c/d")]

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(DeclarationError, match="not found"):
            load_declaration(tmp_path / "gardenia.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "gardenia.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(DeclarationError):
            load_declaration(path)

    def test_empty_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "gardenia.yml"
        path.write_text("", encoding="utf-8")

        with pytest.raises(DeclarationError, match="invalid content"):
            load_declaration(path)
