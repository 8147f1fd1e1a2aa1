from __future__ import annotations

import argparse
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from . import __version__
from .contracts.v1 import OutgoingPayload, PaneAddress, PaneRole, RangeText, ScopeKey, SendOptions, parse_selector
from .errors import EXIT_OK, LlmSendError, SourceReadError
from .kernel.annotations import AnnotationTagger, PendingPromptStore
from .kernel.delivery import SendOrchestrator
from .kernel.extractor import ResponseExtractor
from .kernel.index_cache import ConversationCache
from .kernel.payload import append_to_document, pane_append_text, parse_line_span, reference_text, selection_payload
from .kernel.resolver import AddressResolver
from .kernel.scope import detect_scope
from .kernel.settings import Settings, dump_settings, load_settings
from .paths import locks_dir
from .runners import ScrollbackAccessor, TmuxAccessor
from .util.obslog import setup_root_json_logging

PENDING_SOURCE = "@pending"
EXIT_USAGE = 2


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def _warn(msg: str) -> None:
    print(f"llmsend: warning: {msg}", file=sys.stderr)


@dataclass
class Context:
    accessor: ScrollbackAccessor
    settings: Settings
    workspace: Optional[Path]
    args: argparse.Namespace

    def scope(self) -> ScopeKey:
        return detect_scope(
            self.accessor,
            session=self.args.session,
            window=self.args.window,
            pane=self.args.pane,
        )

    def resolver(self) -> AddressResolver:
        return AddressResolver(self.accessor)

    def assistant(self, scope: Optional[ScopeKey] = None) -> PaneAddress:
        return self.resolver().resolve(PaneRole.ASSISTANT_OUTPUT, scope or self.scope())

    def extractor(self) -> ResponseExtractor:
        return ResponseExtractor(self.accessor, cache=ConversationCache(), history_lines=self.settings.history_lines)

    def orchestrator(self) -> SendOrchestrator:
        return SendOrchestrator(
            self.accessor,
            profile=self.settings.profile(self.args.tool),
            history_lines=self.settings.history_lines,
            lock_dir=locks_dir(),
        )


def _read_source(source: str) -> str:
    try:
        if source == "-":
            return sys.stdin.read()
        return Path(source).expanduser().read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SourceReadError(f"cannot read {source}: {e}", details={"source": source}) from e


def cmd_send(ctx: Context) -> int:
    args = ctx.args
    scope = ctx.scope()
    address = ctx.assistant(scope)
    clear = ctx.settings.clear_on_send and not args.no_clear
    opts = SendOptions(
        clear_after_send=clear,
        filtered=ctx.settings.filtered_send,
        submit_retry=not args.no_retry,
        wait_for_lock=not args.no_wait,
    )
    orch = ctx.orchestrator()

    if args.source == PENDING_SOURCE:
        store = PendingPromptStore(scope, workspace=ctx.workspace)
        doc = store.load()
        delivery = orch.send_document(address, doc, opts)
        result = delivery.wait()
        store.save(doc)
    else:
        text = _read_source(args.source)
        if args.lines:
            start, end = parse_line_span(args.lines)
            payload = selection_payload(text.split("\n"), start, end)
        else:
            payload = OutgoingPayload(kind="document", text=text)
        result = orch.send(address, payload, opts).wait()

    for w in result.warnings:
        _warn(w)
    _print_json({"ok": True, "result": result.model_dump()})
    return EXIT_OK


def cmd_pull(ctx: Context) -> int:
    args = ctx.args
    selector = parse_selector(index=args.index, range_spec=args.range)
    scope = ctx.scope()
    address = ctx.assistant(scope)
    extractor = ctx.extractor()

    if args.into_pending:
        store = PendingPromptStore(scope, workspace=ctx.workspace)
        doc = store.load()
        inserted = AnnotationTagger(extractor).pull(address, selector, doc, row=args.row)
        store.save(doc)
        _print_json({"ok": True, "result": {"lines": len(inserted), "path": str(store.path)}})
        return EXIT_OK

    result = extractor.extract(address, selector)
    if isinstance(result, RangeText):
        if result.truncated:
            _warn(
                f"range truncated: requested {result.requested_start}:{result.requested_end}, "
                f"returned {result.indices[0]}:{result.indices[-1]}"
            )
        text = result.text
    else:
        text = result
    if args.json:
        _print_json({"ok": True, "result": {"text": text}})
    else:
        sys.stdout.write(text + ("\n" if text else ""))
    return EXIT_OK


def cmd_append(ctx: Context) -> int:
    args = ctx.args
    if args.ref:
        start, end = parse_line_span(args.line or "1")
        text = reference_text(args.ref, start, end)
    elif args.text:
        text = args.text
    else:
        raise ValueError("nothing to append: give TEXT or --ref PATH")
    scope = ctx.scope()
    if args.pending:
        store = PendingPromptStore(scope, workspace=ctx.workspace)
        doc = store.load()
        append_to_document(doc, text, raw=args.raw)
        store.save(doc)
        _print_json({"ok": True, "result": {"appended": text, "lines": len(doc), "path": str(store.path)}})
        return EXIT_OK
    address = ctx.resolver().resolve(PaneRole.PROMPT_INPUT, scope)
    ctx.orchestrator().paste_text(address, pane_append_text(text, raw=args.raw))
    _print_json({"ok": True, "result": {"appended": text, "pane": address.pane_id}})
    return EXIT_OK


def cmd_key(ctx: Context) -> int:
    address = ctx.assistant()
    ctx.orchestrator().forward_keys(address, list(ctx.args.keys))
    _print_json({"ok": True, "result": {"pane": address.pane_id, "keys": list(ctx.args.keys)}})
    return EXIT_OK


def cmd_bind(ctx: Context) -> int:
    role = PaneRole.parse(ctx.args.role)
    address = ctx.resolver().bind(role, ctx.scope(), ctx.args.pane_id)
    _print_json({"ok": True, "result": address.model_dump(mode="json")})
    return EXIT_OK


def cmd_unbind(ctx: Context) -> int:
    role = PaneRole.parse(ctx.args.role)
    scope = ctx.scope()
    ctx.resolver().unbind(role, scope)
    _print_json({"ok": True, "result": {"role": role.value, "scope": scope.target}})
    return EXIT_OK


def cmd_roles(ctx: Context) -> int:
    scope = ctx.scope()
    _print_json({"ok": True, "result": {"scope": scope.target, "bindings": ctx.resolver().bindings(scope)}})
    return EXIT_OK


def cmd_index(ctx: Context) -> int:
    address = ctx.assistant()
    index = ctx.extractor().index(address)
    _print_json({"ok": True, "result": index.model_dump()})
    return EXIT_OK


def cmd_config(ctx: Context) -> int:
    sys.stdout.write(dump_settings(ctx.settings))
    return EXIT_OK


def cmd_version(ctx: Context) -> int:
    print(__version__)
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="llmsend", description="Send prompts to an AI pane in tmux and pull responses back")
    p.add_argument("--session", default="", help="tmux session (default: the caller's own)")
    p.add_argument("--window", default="", help="tmux window index (default: the caller's own)")
    p.add_argument("--pane", default="", help="Caller pane used to derive the scope (default: $TMUX_PANE)")
    p.add_argument("--workspace", default="", help="Workspace holding .lazy-llm/ (default: cwd)")
    p.add_argument("--tool", default="", help="Tool profile for delivery timing (default: settings 'tool')")
    p.add_argument("--log-level", default="", help="Log level (default: settings 'log_level')")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_send = sub.add_parser("send", help="Send a prompt (file, '-' for stdin, or @pending)")
    p_send.add_argument("source", help="File path, '-' for stdin, or @pending for the pending prompt")
    p_send.add_argument("--lines", default="", help="Only send lines A:B of the source (1-based, inclusive)")
    p_send.add_argument("--no-clear", action="store_true", help="Keep the pending prompt after sending")
    p_send.add_argument("--no-retry", action="store_true", help="Do not retry an unacknowledged submit")
    p_send.add_argument("--no-wait", action="store_true", help="Fail instead of queueing behind an in-flight send")
    p_send.set_defaults(func=cmd_send)

    p_pull = sub.add_parser("pull", help="Print (or insert) an earlier response; 1 = most recent")
    sel = p_pull.add_mutually_exclusive_group()
    sel.add_argument("--index", type=int, default=None, help="Nth most recent response")
    sel.add_argument("--range", default="", help="Responses A:B, most recent first")
    p_pull.add_argument("--into-pending", action="store_true", help="Insert as tagged lines into the pending prompt")
    p_pull.add_argument("--row", type=int, default=None, help="Insertion row for --into-pending (default: end)")
    p_pull.add_argument("--json", action="store_true", help="Print JSON instead of raw text")
    p_pull.set_defaults(func=cmd_pull)

    p_append = sub.add_parser("append", help="Paste context/reference text into the prompt pane without sending")
    p_append.add_argument("text", nargs="?", default="", help="Text to append")
    p_append.add_argument("--raw", action="store_true", help="Append inline instead of as a separate paragraph")
    p_append.add_argument("--pending", action="store_true", help="Add to the pending prompt file instead of the prompt pane")
    p_append.add_argument("--ref", default="", help="Build a '# See line N in PATH' reference for this path")
    p_append.add_argument("--line", default="", help="Line or span for --ref (N or A-B)")
    p_append.set_defaults(func=cmd_append)

    p_key = sub.add_parser("key", help="Forward keypresses to the assistant pane (e.g. 1, Escape, C-c)")
    p_key.add_argument("keys", nargs="+", help="tmux key names")
    p_key.set_defaults(func=cmd_key)

    p_bind = sub.add_parser("bind", help="Bind a pane role in this window")
    p_bind.add_argument("role", help="assistant_output | prompt_input")
    p_bind.add_argument("pane_id", help="tmux pane id (e.g. %%3)")
    p_bind.set_defaults(func=cmd_bind)

    p_unbind = sub.add_parser("unbind", help="Remove a pane role binding in this window")
    p_unbind.add_argument("role", help="assistant_output | prompt_input")
    p_unbind.set_defaults(func=cmd_unbind)

    p_roles = sub.add_parser("roles", help="Show pane role bindings for this window")
    p_roles.set_defaults(func=cmd_roles)

    p_index = sub.add_parser("index", help="Show the conversation index of the assistant pane")
    p_index.set_defaults(func=cmd_index)

    p_config = sub.add_parser("config", help="Show effective settings")
    p_config.set_defaults(func=cmd_config)

    p_ver = sub.add_parser("version", help="Show version")
    p_ver.set_defaults(func=cmd_version)

    return p


def main(argv: Optional[list] = None, *, accessor: Optional[ScrollbackAccessor] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    workspace = Path(args.workspace).expanduser() if args.workspace else None
    try:
        settings = load_settings(workspace)
        setup_root_json_logging(component="llmsend", level=args.log_level or settings.log_level)
        ctx = Context(accessor=accessor or TmuxAccessor(), settings=settings, workspace=workspace, args=args)
        return int(args.func(ctx))
    except LlmSendError as e:
        _print_json({"ok": False, "error": e.to_dict()})
        return e.exit_code
    except ValueError as e:
        _print_json({"ok": False, "error": {"code": "invalid_argument", "message": str(e), "details": {}}})
        return EXIT_USAGE


if __name__ == "__main__":
    raise SystemExit(main())
