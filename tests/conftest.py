import argparse
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

import idgen  # noqa: E402


@pytest.fixture
def write_source(tmp_path: Path) -> Callable[[str, str], Path]:
    def _write_source(relative: str, text: str) -> Path:
        path = tmp_path / "src" / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write_source


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    path = tmp_path / "src"
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def make_args(source_dir: Path) -> Callable[..., argparse.Namespace]:
    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "sources": [source_dir],
            "output_dir": None,
            "emit_marker": False,
            "marker": "Idgen.Identifier",
            "strict": False,
            "list": False,
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args


@pytest.fixture
def make_declaration() -> Callable[..., idgen.CandidateDeclaration]:
    def _make_declaration(
        name: str,
        *,
        namespace: str = "Shop",
        is_extensible: bool = True,
        attributes: tuple[str, ...] = ("Identifier",),
        containing_types: tuple[str, ...] = (),
        type_parameters: tuple[str, ...] = (),
        usings: tuple[idgen.UsingDirective, ...] = (),
        path: str = "Shop.cs",
        line: int = 1,
    ) -> idgen.CandidateDeclaration:
        return idgen.CandidateDeclaration(
            name=name,
            namespace=namespace,
            is_extensible=is_extensible,
            raw_attributes=tuple(idgen.AttributeRef(a) for a in attributes),
            modifiers=frozenset({"partial"}) if is_extensible else frozenset(),
            containing_types=containing_types,
            type_parameters=type_parameters,
            usings=usings,
            path=path,
            line=line,
        )

    return _make_declaration
