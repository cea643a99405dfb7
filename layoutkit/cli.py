"""Command-line interface for layout inspection and header generation."""

from __future__ import annotations

import ctypes
import importlib
import json
import logging
from typing import TYPE_CHECKING, Any

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from layoutkit.reflect import LayoutError, header, layout_of
from layoutkit.reflect.parser import ValidationError, parse
from layoutkit.transfer import DatatypeError, LocalTransport, registry_for

if TYPE_CHECKING:
    from layoutkit.reflect.types import TypeLayout
    from layoutkit.transfer import LocalDatatype


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log layout and datatype construction")
def cli(verbose: bool) -> None:
    """Structure layout reflection and datatype synthesis."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )


def load_type(path: str) -> type:
    """Import a structure given as "package.module:Name"."""
    module_name, sep, attr = path.partition(":")
    if not sep or not attr:
        raise click.BadParameter(f"{path} is not of the form module:Name", param_hint="--type")
    try:
        module = importlib.import_module(module_name)
        return getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise click.BadParameter(f"cannot load {path}: {e}", param_hint="--type") from e


def _load_structs(input_file: str | None, type_paths: tuple[str, ...]) -> dict[str, type]:
    if not input_file and not type_paths:
        raise click.UsageError("Give a layout definition file (--input) or a type (--type)")

    structs: dict[str, type] = {}
    if input_file:
        with open(input_file, encoding="utf-8") as f:
            text = f.read()
        try:
            structs.update(parse(text))
        except ValidationError as e:
            raise click.ClickException(str(e)) from e

    for path in type_paths:
        t = load_type(path)
        structs[t.__name__] = t

    try:
        for t in structs.values():
            layout_of(t)
    except LayoutError as e:
        raise click.ClickException(str(e)) from e
    return structs


input_option = click.option("--input", "-i", "input_file", help="Layout definition file")
type_option = click.option(
    "--type", "-t", "type_paths", multiple=True, help="Structure to load, as module:Name"
)


@cli.command()
@input_option
@type_option
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("--datatypes", is_flag=True, help="Also synthesize each transport datatype")
def info(input_file: str | None, type_paths: tuple[str, ...], output_json: bool, datatypes: bool) -> None:
    """Display field tables, offsets and padding of structures."""
    structs = _load_structs(input_file, type_paths)

    handles: dict[str, LocalDatatype | str] = {}
    if datatypes:
        transport = LocalTransport()
        registry = registry_for(transport)
        for name, t in structs.items():
            try:
                handles[name] = registry.datatype(t)
            except DatatypeError as e:
                handles[name] = str(e)

    if output_json:
        _output_json(structs, handles)
    else:
        _output_plain(structs, handles)


@cli.command()
@input_option
@type_option
@click.option("--output", "-o", "output_file", required=True, help="Output header file")
def gen(input_file: str | None, type_paths: tuple[str, ...], output_file: str) -> None:
    """Generate a C header that asserts the reflected layouts."""
    structs = _load_structs(input_file, type_paths)
    try:
        generated_file = header.render(structs.values())
    except RuntimeError as e:
        raise click.ClickException(str(e)) from e

    with open(output_file, "w", encoding="utf-8") as f:
        f.write(generated_file)


def _datatype_json(handle: LocalDatatype | str) -> dict[str, Any]:
    if isinstance(handle, str):
        return {"error": handle}
    return {
        "name": handle.name,
        "lb": handle.lb,
        "extent": handle.extent,
        "data_size": handle.size,
        "blocks": len(handle.blocks),
    }


def _output_json(structs: dict[str, type], handles: dict[str, LocalDatatype | str]) -> None:
    """Output layouts as JSON."""
    data: dict = {"structs": {}}

    for name, t in structs.items():
        layout = layout_of(t)
        entry = layout.to_dict()
        for field_entry, f in zip(entry["fields"], layout.fields):
            field_entry["type"] = f.shape.describe()
        entry["padding"] = [p.to_dict() for p in layout.padding]
        if name in handles:
            entry["datatype"] = _datatype_json(handles[name])
        data["structs"][name] = entry

    print(json.dumps(data, indent=2))


def _layout_table(layout: TypeLayout) -> Table:
    table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
    table.add_column("#", style="dim", justify="right")
    table.add_column("Name", style="white")
    table.add_column("Type", style="green")
    table.add_column("Offset", style="yellow", justify="right")
    table.add_column("Size", style="yellow", justify="right")

    rows = [(f.offset, str(f.index), f.name, f.shape.describe(), f.size) for f in layout.fields]
    rows += [(p.offset, "", "[dim](padding)[/dim]", "", p.size) for p in layout.padding]
    for offset, index, name, type_name, size in sorted(rows, key=lambda r: r[0]):
        table.add_row(index, name, type_name, str(offset), str(size))
    return table


def _output_plain(structs: dict[str, type], handles: dict[str, LocalDatatype | str]) -> None:
    """Output layouts using rich text formatting."""
    console = Console()

    for name, t in structs.items():
        layout = layout_of(t)
        padding = sum(p.size for p in layout.padding)
        console.print(
            f"[bold cyan]{name}[/bold cyan] "
            f"{layout.size} bytes, align {ctypes.alignment(t)}, {padding} padding"
        )
        console.print(_layout_table(layout))

        handle = handles.get(name)
        if isinstance(handle, str):
            console.print(f"[red]Datatype:[/red] {handle}")
        elif handle is not None:
            console.print(
                f"Datatype: {handle.name}, extent {handle.extent}, "
                f"{handle.size} data bytes in {len(handle.blocks)} blocks"
            )
        console.print()


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
