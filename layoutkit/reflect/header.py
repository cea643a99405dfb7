"""C header generator for reflected structure layouts."""

from collections.abc import Iterable

from jinja2 import Environment, PackageLoader

from .traits import layout_of
from .types import FieldShape, ScalarKind, TypeLayout

env = Environment(
    loader=PackageLoader("layoutkit.reflect", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
)

template = env.get_template("layout.h.j2")

C_TYPE_MAP = {
    ScalarKind.CHAR: "char",
    ScalarKind.SIGNED_CHAR: "signed char",
    ScalarKind.UNSIGNED_CHAR: "unsigned char",
    ScalarKind.SHORT: "short",
    ScalarKind.UNSIGNED_SHORT: "unsigned short",
    ScalarKind.INT: "int",
    ScalarKind.UNSIGNED: "unsigned int",
    ScalarKind.LONG: "long",
    ScalarKind.UNSIGNED_LONG: "unsigned long",
    ScalarKind.LONG_LONG: "long long",
    ScalarKind.UNSIGNED_LONG_LONG: "unsigned long long",
    ScalarKind.FLOAT: "float",
    ScalarKind.DOUBLE: "double",
    ScalarKind.LONG_DOUBLE: "long double",
    ScalarKind.WCHAR: "wchar_t",
    ScalarKind.BYTE: "unsigned char",
    ScalarKind.BOOL: "bool",
    ScalarKind.FLOAT_COMPLEX: "float _Complex",
    ScalarKind.DOUBLE_COMPLEX: "double _Complex",
    ScalarKind.LONG_DOUBLE_COMPLEX: "long double _Complex",
}


def _c_type(shape: FieldShape) -> str:
    if shape.is_struct:
        return shape.element_type.__name__
    return C_TYPE_MAP[ScalarKind(shape.element_kind)]


def _extents(shape: FieldShape) -> str:
    return "".join(f"[{n}]" for n in shape.extents)


def _pack(t: type) -> int:
    return getattr(t, "_pack_", 0)


def dependency_order(structs: Iterable[type]) -> list[type]:
    """Order structures so every nested structure precedes its users."""
    ordered: list[type] = []

    def add(t: type) -> None:
        if t in ordered:
            return
        for f in layout_of(t).fields:
            if f.shape.is_struct:
                add(f.shape.element_type)
        ordered.append(t)

    for t in structs:
        add(t)
    return ordered


def render(structs: Iterable[type]) -> str:
    """Render a C header declaring the structures with layout assertions."""
    layouts: list[tuple[type, TypeLayout]] = []
    for t in dependency_order(structs):
        layout = layout_of(t)
        if not layout.fields:
            raise RuntimeError(f"{layout.name} has no fields, C does not allow empty structures")
        layouts.append((t, layout))

    uses_complex = any(
        not f.shape.is_struct and ScalarKind(f.shape.element_kind).is_complex
        for _, layout in layouts
        for f in layout.fields
    )

    return template.render(
        layouts=layouts,
        uses_complex=uses_complex,
        c_type=_c_type,
        extents=_extents,
        pack=_pack,
    )
