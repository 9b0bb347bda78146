from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

import idgen


def _require_callable(name: str) -> Callable[..., object]:
    symbol = getattr(idgen, name, None)
    assert callable(symbol), f"Missing writer API symbol: idgen.{name}"
    return symbol


def _make_unit(
    *,
    namespace: str = "Shop.Orders",
    type_name: str = "OrderId",
    sources: tuple[str, ...] = ("src/Orders/OrderId.cs:6",),
    hint_name: str | None = None,
) -> idgen.GeneratedUnit:
    return idgen.GeneratedUnit(
        hint_name=hint_name or idgen.unit_hint_name(namespace, type_name),
        namespace=namespace,
        type_name=type_name,
        content=idgen.render_identifier_source(namespace, type_name),
        sources=sources,
    )


def _lines(text: str) -> list[str]:
    return text.splitlines()


def test_format_file_header_exact_lines() -> None:
    format_file_header = _require_callable("format_file_header")

    header = format_file_header(idgen.WriteConfig(), _make_unit())

    assert header == [
        "// <auto-generated>",
        "//     Generated by idgen. Changes to this file are lost on regeneration.",
        "//     Type: Shop.Orders.OrderId",
        "//     Source: src/Orders/OrderId.cs:6",
        "//     Marker: Idgen.Identifier (simple match)",
        "// </auto-generated>",
    ]


def test_format_file_header_one_source_line_per_declaration_and_strict_label() -> None:
    config = idgen.WriteConfig(
        marker=idgen.MarkerSpec("StrongId", "Company"), policy=idgen.MATCH_QUALIFIED
    )
    unit = _make_unit(sources=("A.cs:1", "B.cs:9"))

    header = idgen.format_file_header(config, unit)

    assert [line for line in header if "Source:" in line] == [
        "//     Source: A.cs:1",
        "//     Source: B.cs:9",
    ]
    assert "//     Marker: Company.StrongId (qualified match)" in header


def test_format_file_header_global_namespace_and_marker_unit() -> None:
    global_header = idgen.format_file_header(
        idgen.WriteConfig(), _make_unit(namespace="", type_name="TopLevel")
    )
    marker_header = idgen.format_file_header(
        idgen.WriteConfig(), idgen.emit_marker_unit()
    )

    assert "//     Type: TopLevel" in global_header
    assert "//     Type: Idgen.IdentifierAttribute" in marker_header
    assert not any("Source:" in line for line in marker_header)


def test_assemble_unit_source_is_header_then_content_with_single_trailing_newline() -> None:
    unit = _make_unit()

    text = idgen.assemble_unit_source(idgen.WriteConfig(), unit)
    lines = _lines(text)

    assert lines[0] == "// <auto-generated>"
    assert lines[5] == "// </auto-generated>"
    assert lines[6] == "#nullable enable"
    assert text.endswith("}\n")
    assert not text.endswith("\n\n")
    assert "\n".join(lines[6:]) == unit.content


def test_assemble_unit_source_rejects_bad_hint_name() -> None:
    unit = _make_unit(hint_name="Shop.Orders.OrderId.cs")

    with pytest.raises(ValueError, match=r"\.g\.cs"):
        idgen.assemble_unit_source(idgen.WriteConfig(), unit)


def test_write_unit_creates_directory_and_reports_counts(tmp_path: Path) -> None:
    output_dir = tmp_path / "out" / "Generated"
    unit = _make_unit()

    result = idgen.write_unit(output_dir, idgen.WriteConfig(), unit)

    written = output_dir / "Shop.Orders.OrderId.g.cs"
    content = written.read_text(encoding="utf-8")
    assert result.filename == "Shop.Orders.OrderId.g.cs"
    assert result.path == written.resolve()
    assert result.line_count == content.count("\n")
    assert result.byte_count == len(content.encode("utf-8"))
    assert content == idgen.assemble_unit_source(idgen.WriteConfig(), unit)


def test_write_unit_overwrites_existing_file(tmp_path: Path) -> None:
    target = tmp_path / "Shop.Orders.OrderId.g.cs"
    target.write_text("stale", encoding="utf-8")

    idgen.write_unit(tmp_path, idgen.WriteConfig(), _make_unit())

    assert target.read_text(encoding="utf-8").startswith("// <auto-generated>")


def test_write_units_writes_in_order_and_sums_lines(tmp_path: Path) -> None:
    units = (
        _make_unit(namespace="Shop.Billing", type_name="Id"),
        _make_unit(namespace="Shop.Shipping", type_name="Id"),
        idgen.emit_marker_unit(),
    )

    result = idgen.write_units(tmp_path / "out", idgen.WriteConfig(), units)

    assert [f.filename for f in result.files] == [
        "Shop.Billing.Id.g.cs",
        "Shop.Shipping.Id.g.cs",
        "Idgen.IdentifierAttribute.g.cs",
    ]
    assert result.output_dir == tmp_path / "out"
    assert result.total_lines == sum(f.line_count for f in result.files)
    assert sorted(p.name for p in (tmp_path / "out").iterdir()) == sorted(
        f.filename for f in result.files
    )


def test_write_units_rejects_duplicate_hint_names_before_writing(tmp_path: Path) -> None:
    units = (_make_unit(), _make_unit(sources=("Other.cs:2",)))

    with pytest.raises(ValueError, match="Duplicate generated unit names: Shop.Orders.OrderId.g.cs"):
        idgen.write_units(tmp_path / "out", idgen.WriteConfig(), units)

    assert not (tmp_path / "out").exists()


def test_write_units_with_no_units_still_creates_output_dir(tmp_path: Path) -> None:
    result = idgen.write_units(tmp_path / "empty", idgen.WriteConfig(), ())

    assert (tmp_path / "empty").is_dir()
    assert result.files == ()
    assert result.total_lines == 0


def test_write_units_leaves_unrelated_files_in_place(tmp_path: Path) -> None:
    stale = tmp_path / "Shop.Old.g.cs"
    stale.write_text("// old", encoding="utf-8")

    idgen.write_units(tmp_path, idgen.WriteConfig(), (_make_unit(),))

    assert stale.read_text(encoding="utf-8") == "// old"
