"""funs Language Server, a pygls-based LSP for .fs files.

Publishes lex and parse diagnostics and offers document symbols,
keyword/name completion and go-to-definition for top-level bindings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from lsprotocol import types as lsp
from pygls.lsp.server import LanguageServer

from funs import __version__
from funs.ast_nodes import (
    Binding,
    Declaration,
    ExplicitImports,
    Import,
    Lambda,
    Module,
    RecordShape,
    TypeDecl,
    pattern_binders,
)
from funs.errors import Diagnostic, Severity
from funs.frontend import process_source
from funs.source import Span
from funs.tokens import KEYWORDS, Token

logger = logging.getLogger(__name__)

# ── Conversion helpers ────────────────────────────────────────────

_SEVERITY_MAP = {
    Severity.ERROR: lsp.DiagnosticSeverity.Error,
    Severity.WARNING: lsp.DiagnosticSeverity.Warning,
    Severity.NOTE: lsp.DiagnosticSeverity.Information,
}

_KEYWORD_COMPLETIONS = sorted(KEYWORDS.keys())


def span_to_range(span: Span) -> lsp.Range:
    """Convert a Span (1-based lines, 0-based columns) to an LSP Range."""
    return lsp.Range(
        start=lsp.Position(line=span.start_line - 1, character=span.start_col),
        end=lsp.Position(line=span.end_line - 1, character=span.end_col),
    )


def _compile_diag(d: Diagnostic) -> lsp.Diagnostic:
    """Convert a funs Diagnostic to an LSP Diagnostic."""
    span_range = lsp.Range(start=lsp.Position(0, 0), end=lsp.Position(0, 0))
    if d.labels:
        span_range = span_to_range(d.labels[0].span)
    return lsp.Diagnostic(
        range=span_range,
        severity=_SEVERITY_MAP.get(d.severity, lsp.DiagnosticSeverity.Error),
        source="funs",
        code=d.code,
        message=f"[{d.code}] {d.message}",
    )


# ── Per-document state ────────────────────────────────────────────


@dataclass
class DocumentState:
    """Cached analysis results for a single open document."""

    source: str = ""
    tokens: list[Token] = field(default_factory=list)
    module: Module | None = None
    diagnostics: list[lsp.Diagnostic] = field(default_factory=list)


# ── Server ────────────────────────────────────────────────────────

server = LanguageServer(
    "funs-lsp", __version__,
    text_document_sync_kind=lsp.TextDocumentSyncKind.Full,
)
_state: dict[str, DocumentState] = {}


def _analyze(uri: str, source: str) -> DocumentState:
    """Run the front end over ``source``, cache and return the state."""
    result = process_source(source, uri)
    ds = DocumentState(source=source, tokens=list(result.tokens), module=result.module)
    if result.error is not None:
        ds.diagnostics = [_compile_diag(d) for d in result.error.diagnostics]
    _state[uri] = ds
    logger.debug(f"analyzed {uri}: {len(ds.diagnostics)} diagnostics")
    return ds


def _get_word_at(source: str, line: int, character: int) -> str:
    """Extract the word at the given 0-indexed position."""
    lines = source.splitlines()
    if line < 0 or line >= len(lines):
        return ""
    text = lines[line]
    if character < 0 or character >= len(text):
        # Cursor right after the last word of the line
        if 0 < character <= len(text):
            character -= 1
        else:
            return ""

    start = character
    while start > 0 and (text[start - 1].isalnum() or text[start - 1] == "_"):
        start -= 1
    end = character
    while end < len(text) and (text[end].isalnum() or text[end] == "_"):
        end += 1
    return text[start:end]


def _top_level_names(module: Module) -> dict[str, Span]:
    """Names bound at module level, mapped to where they are bound."""
    names: dict[str, Span] = {}
    for decl in module.declarations:
        if isinstance(decl, Binding):
            for binder in pattern_binders(decl.pattern):
                names.setdefault(binder.name, binder.span)
        elif isinstance(decl, TypeDecl):
            names.setdefault(decl.name, decl.span)
        elif isinstance(decl, Import) and isinstance(decl.bindings, ExplicitImports):
            for item in decl.bindings.names:
                names.setdefault(item.local_name, item.span)
    return names


# ── LSP Feature Handlers ─────────────────────────────────────────


@server.feature(lsp.TEXT_DOCUMENT_DID_OPEN)
def did_open(params: lsp.DidOpenTextDocumentParams) -> None:
    uri = params.text_document.uri
    ds = _analyze(uri, params.text_document.text)
    server.text_document_publish_diagnostics(lsp.PublishDiagnosticsParams(
        uri=uri,
        diagnostics=ds.diagnostics,
    ))


@server.feature(lsp.TEXT_DOCUMENT_DID_CHANGE)
def did_change(params: lsp.DidChangeTextDocumentParams) -> None:
    uri = params.text_document.uri
    # Full sync, so the last change holds the whole text
    source = params.content_changes[-1].text if params.content_changes else ""
    ds = _analyze(uri, source)
    server.text_document_publish_diagnostics(lsp.PublishDiagnosticsParams(
        uri=uri,
        diagnostics=ds.diagnostics,
    ))


@server.feature(lsp.TEXT_DOCUMENT_DID_CLOSE)
def did_close(params: lsp.DidCloseTextDocumentParams) -> None:
    _state.pop(params.text_document.uri, None)


@server.feature(
    lsp.TEXT_DOCUMENT_COMPLETION,
    lsp.CompletionOptions(trigger_characters=["."]),
)
def completion(params: lsp.CompletionParams) -> lsp.CompletionList:
    ds = _state.get(params.text_document.uri)
    items = [
        lsp.CompletionItem(label=kw, kind=lsp.CompletionItemKind.Keyword)
        for kw in _KEYWORD_COMPLETIONS
    ]
    if ds is not None and ds.module is not None:
        seen = set(_KEYWORD_COMPLETIONS)
        for name in _top_level_names(ds.module):
            if name not in seen:
                seen.add(name)
                items.append(lsp.CompletionItem(
                    label=name, kind=lsp.CompletionItemKind.Variable,
                ))
    return lsp.CompletionList(is_incomplete=False, items=items)


@server.feature(lsp.TEXT_DOCUMENT_DEFINITION)
def definition(params: lsp.DefinitionParams) -> lsp.Location | None:
    uri = params.text_document.uri
    ds = _state.get(uri)
    if ds is None or ds.module is None:
        return None

    word = _get_word_at(ds.source, params.position.line, params.position.character)
    span = _top_level_names(ds.module).get(word) if word else None
    if span is None:
        return None
    return lsp.Location(uri=uri, range=span_to_range(span))


@server.feature(lsp.TEXT_DOCUMENT_DOCUMENT_SYMBOL)
def document_symbol(params: lsp.DocumentSymbolParams) -> list[lsp.DocumentSymbol]:
    ds = _state.get(params.text_document.uri)
    if ds is None or ds.module is None:
        return []
    symbols: list[lsp.DocumentSymbol] = []
    for decl in ds.module.declarations:
        symbols.extend(_decl_to_symbols(decl))
    return symbols


def _decl_to_symbols(decl: Declaration) -> list[lsp.DocumentSymbol]:
    """Convert a top-level declaration to LSP DocumentSymbols."""
    if isinstance(decl, Binding):
        is_function = isinstance(decl.value, Lambda)
        detail = None
        if is_function:
            lam = decl.value
            detail = "(..)" if lam.inherits_params else (
                "(" + ", ".join(p.name for p in lam.params) + ")")
        return [
            lsp.DocumentSymbol(
                name=binder.name,
                kind=lsp.SymbolKind.Function if is_function else lsp.SymbolKind.Variable,
                range=span_to_range(decl.span),
                selection_range=span_to_range(binder.span),
                detail=detail,
            )
            for binder in pattern_binders(decl.pattern)
        ]
    if isinstance(decl, TypeDecl):
        children: list[lsp.DocumentSymbol] = []
        if isinstance(decl.shape, RecordShape):
            for fld in decl.shape.fields:
                children.append(lsp.DocumentSymbol(
                    name=fld.name,
                    kind=lsp.SymbolKind.Field,
                    range=span_to_range(fld.span),
                    selection_range=span_to_range(fld.span),
                ))
        else:
            for ctor in decl.shape.ctors:
                children.append(lsp.DocumentSymbol(
                    name=ctor.name,
                    kind=lsp.SymbolKind.EnumMember,
                    range=span_to_range(ctor.span),
                    selection_range=span_to_range(ctor.span),
                ))
        return [lsp.DocumentSymbol(
            name=decl.name,
            kind=lsp.SymbolKind.Struct if isinstance(decl.shape, RecordShape)
            else lsp.SymbolKind.Enum,
            range=span_to_range(decl.span),
            selection_range=span_to_range(decl.span),
            children=children or None,
        )]
    if isinstance(decl, Import):
        if isinstance(decl.bindings, ExplicitImports):
            names = ", ".join(item.name for item in decl.bindings.names)
        else:
            names = ".."
        return [lsp.DocumentSymbol(
            name=f"{'.'.join(decl.path)} {{{names}}}" if decl.path else names,
            kind=lsp.SymbolKind.Module,
            range=span_to_range(decl.span),
            selection_range=span_to_range(decl.span),
        )]
    return []


def main() -> None:
    """Start the funs language server on stdio."""
    server.start_io()
