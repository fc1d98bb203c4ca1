"""A small builder for HTML element trees."""

from __future__ import annotations

import html
from dataclasses import dataclass
from typing import Mapping, Union

VOID_ELEMENTS = frozenset(
    {
        "area", "base", "br", "col", "embed", "hr", "img", "input",
        "link", "meta", "source", "track", "wbr",
    }
)


@dataclass(frozen=True)
class Text:
    """A run of text, escaped when rendered."""

    value: str

    def render(self) -> str:
        """Return the text with HTML special characters escaped."""
        return html.escape(self.value, quote=False)


@dataclass(frozen=True)
class Element:
    """An HTML element with sorted attributes and child nodes."""

    tag: str
    attrs: tuple[tuple[str, str], ...] = ()
    children: tuple[Union["Element", Text], ...] = ()

    def render(self) -> str:
        """Return the element and its children as HTML markup."""
        attributes = "".join(
            f' {name}="{html.escape(value, quote=True)}"' for name, value in self.attrs
        )
        opening = f"<{self.tag}{attributes}>"
        if self.tag in VOID_ELEMENTS:
            return opening
        prefix = "<!DOCTYPE html>" if self.tag == "html" else ""
        inner = "".join(child.render() for child in self.children)
        return f"{prefix}{opening}{inner}</{self.tag}>"

    def __str__(self) -> str:
        return self.render()


def text(value: object) -> Text:
    """Return a text node."""
    return Text(str(value))


def element(
    tag: str, attrs: Mapping[str, object] | None = None, *args: Element | Text | str
) -> Element:
    """Build an element; plain strings among the children become text nodes."""
    sorted_attrs = tuple(sorted((name, str(value)) for name, value in (attrs or {}).items()))
    children = tuple(text(child) if isinstance(child, str) else child for child in args)
    return Element(tag, sorted_attrs, children)