"""
Markdown → reveal tree.

The complete document is parsed and mounted up front; partially parsed
markdown produces broken structure. Text is then split into per-word
units and block-level nodes become units of their own, all starting at
opacity 0, in document order.
"""

import html
import re
from typing import Optional

from markdown_it import MarkdownIt
from markdown_it.token import Token

INLINE_TAGS = frozenset({
    "a", "span", "strong", "em", "b", "i", "s", "code", "mark", "small", "del", "ins", "sub", "sup",
})
VOID_TAGS = frozenset({"br", "hr", "img"})
ROOT_TAG = "div"

_WORDS = re.compile(r"(\s+)")
_md = MarkdownIt("commonmark", {"breaks": True, "html": False}).enable(["table", "strikethrough"])


def split_words(text: str) -> list[str]:
    """Whitespace-preserving word tokens: words and the runs between them."""
    return [part for part in _WORDS.split(text) if part]


class RevealNode:
    __slots__ = ("tag", "text", "attrs", "children", "opacity", "transition_ms")

    def __init__(self, tag: Optional[str], text: Optional[str] = None, attrs: Optional[dict[str, str]] = None):
        self.tag = tag
        self.text = text
        self.attrs = attrs or {}
        self.children: list["RevealNode"] = []
        self.opacity: Optional[float] = None
        self.transition_ms: Optional[int] = None

    @property
    def is_text(self) -> bool:
        return self.tag is None

    @property
    def is_inline(self) -> bool:
        return self.tag in INLINE_TAGS

    @property
    def hidden(self) -> bool:
        return self.opacity == 0

    def append(self, child: "RevealNode") -> "RevealNode":
        self.children.append(child)
        return child

    def plain_text(self) -> str:
        if self.is_text:
            return self.text or ""
        return "".join(child.plain_text() for child in self.children)

    def to_html(self) -> str:
        if self.is_text:
            return html.escape(self.text or "", quote=False)
        attrs = dict(self.attrs)
        if self.opacity is not None:
            style = f"opacity: {self.opacity:g}"
            if self.transition_ms:
                style += f"; transition: opacity {self.transition_ms / 1000:g}s ease-in-out"
            attrs["style"] = style
        rendered = "".join(f' {k}="{html.escape(v, quote=True)}"' for k, v in attrs.items())
        if self.tag in VOID_TAGS:
            return f"<{self.tag}{rendered}>"
        inner = "".join(child.to_html() for child in self.children)
        return f"<{self.tag}{rendered}>{inner}</{self.tag}>"

    def __repr__(self) -> str:
        if self.is_text:
            return f"RevealNode(text={self.text!r})"
        return f"RevealNode(tag={self.tag!r}, children={len(self.children)})"


class RevealDocument:
    """A fully laid-out tree plus its hidden units in reveal order."""

    def __init__(self, root: RevealNode):
        self.root = root
        self.units = _hide(root)

    def __len__(self) -> int:
        return len(self.units)

    def to_html(self) -> str:
        return "".join(child.to_html() for child in self.root.children)

    def visible_text(self) -> str:
        """Text of the word units revealed so far."""
        return "".join(u.plain_text() for u in self.units if u.tag == "span" and not u.hidden)


def parse_markdown(text: str) -> RevealDocument:
    root = RevealNode(ROOT_TAG)
    _build(_md.parse(text), root)
    return RevealDocument(root)


def _attrs(token: Token) -> dict[str, str]:
    return {k: str(v) for k, v in (token.attrs or {}).items()}


def _build(tokens: list[Token], parent: RevealNode) -> None:
    stack = [parent]
    for tok in tokens:
        if tok.hidden:
            continue  # paragraph wrappers in tight lists
        if tok.nesting == 1:
            stack.append(stack[-1].append(RevealNode(tok.tag, attrs=_attrs(tok))))
        elif tok.nesting == -1:
            if len(stack) > 1:
                stack.pop()
        elif tok.type == "inline":
            _build(tok.children or [], stack[-1])
        elif tok.type in ("softbreak", "hardbreak"):
            stack[-1].append(RevealNode("br"))
        elif tok.type == "hr":
            stack[-1].append(RevealNode("hr"))
        elif tok.type == "image":
            attrs = _attrs(tok)
            attrs.setdefault("alt", tok.content)
            stack[-1].append(RevealNode("img", attrs=attrs))
        elif tok.type == "code_inline":
            stack[-1].append(RevealNode("code")).append(RevealNode(None, tok.content))
        elif tok.type in ("fence", "code_block"):
            pre = stack[-1].append(RevealNode("pre"))
            pre.append(RevealNode("code")).append(RevealNode(None, tok.content))
        elif tok.content:
            stack[-1].append(RevealNode(None, tok.content))


def _hide(root: RevealNode) -> list[RevealNode]:
    units: list[RevealNode] = []

    def walk(node: RevealNode) -> None:
        replaced: list[RevealNode] = []
        for child in node.children:
            if child.is_text:
                if not (child.text or "").strip():
                    replaced.append(child)
                    continue
                for word in split_words(child.text or ""):
                    span = RevealNode("span")
                    span.append(RevealNode(None, word))
                    span.opacity = 0
                    units.append(span)
                    replaced.append(span)
                continue
            if not child.is_inline:
                child.opacity = 0
                units.append(child)
            replaced.append(child)
            walk(child)
        node.children = replaced

    walk(root)
    return units
