"""
Interactive template shell

Reads templates at a prompt_toolkit prompt with live highlighting, prints
their canonical rendering, and keeps the last template around so its holes
can be listed and filled from slash commands.
"""

from __future__ import annotations

import re
import sys
import traceback
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.shortcuts import clear

from .errors import TemplateError
from .grammar import TemplateParser
from .nodes import AST
from .repl_highlight import TemplateLexer
from .utils import configure_logging, debug_py_trace_enabled, set_debug_py_trace

# Pasted text often carries these; none of them is valid template input.
_INVISIBLE_RE = re.compile("[\u200b\u200c\u200d\ufeff\u00a0]")
_CONTINUATION_RE = re.compile(r"\\\r?\n")

_ON = ("on", "1", "true", "yes")
_OFF = ("off", "0", "false", "no")


@dataclass
class ReplState:
    last: Optional[AST] = None
    show_tree: bool = False


def parse_fills(arg: str) -> Dict[str, str]:
    """Parse `name=value name2=value2` into a fill map."""
    fills: Dict[str, str] = {}

    for item in arg.split():
        name, sep, value = item.partition("=")
        if not sep or not name:
            raise ValueError(f"expected name=value, got '{item}'")
        fills[name] = value

    return fills


# ========================================================================
# Slash commands
# ========================================================================

def _cmd_clear(arg: str, state: ReplState) -> None:
    clear()


def _cmd_tree(arg: str, state: ReplState) -> None:
    state.show_tree = not state.show_tree
    print(f"Syntax tree: {'on' if state.show_tree else 'off'}")


def _cmd_py_traceback(arg: str, state: ReplState) -> None:
    choice = arg.lower()
    if choice in _ON or choice in _OFF:
        set_debug_py_trace(choice in _ON)
    elif not choice:
        set_debug_py_trace(not debug_py_trace_enabled())
    else:
        print("Usage: /py-traceback [on|off]", file=sys.stderr)
        return

    print(f"Python traceback: {'on' if debug_py_trace_enabled() else 'off'}")


def _cmd_holes(arg: str, state: ReplState) -> None:
    if state.last is None:
        print("No template parsed yet.", file=sys.stderr)
        return

    names = state.last.hole_names()
    print(", ".join(names) if names else "No unresolved holes.")


def _cmd_fill(arg: str, state: ReplState) -> None:
    if state.last is None:
        print("No template parsed yet.", file=sys.stderr)
        return

    try:
        fills = parse_fills(arg)
    except ValueError as exc:
        print(f"Usage: /fill name=value ... ({exc})", file=sys.stderr)
        return

    # The clone is filled; state.last stays a reusable template.
    filled = state.last.clone()
    filled.process_holes(fills)
    filled.process_refs(filled.var_values())
    print(filled)


CommandFn = Callable[[str, ReplState], None]

# name -> (handler, help text, argument hint)
COMMANDS: Dict[str, Tuple[CommandFn, str, str]] = {
    "/clear": (_cmd_clear, "Clear the terminal screen", ""),
    "/tree": (_cmd_tree, "Toggle printing the concrete syntax tree", ""),
    "/holes": (_cmd_holes, "List unresolved holes of the last template", ""),
    "/fill": (_cmd_fill, "Print the last template with holes filled", "name=value ..."),
    "/py-traceback": (_cmd_py_traceback, "Toggle Python traceback on errors", "[on|off]"),
}


def _handle_slash(line: str, state: ReplState) -> bool:
    """Run a slash command. Returns False when line is template source."""
    line = line.strip()
    if not line.startswith("/"):
        return False

    name, _, arg = line.partition(" ")
    entry = COMMANDS.get(name)
    if entry is None:
        print(f"Unknown command: {name}", file=sys.stderr)
        return True

    handler = entry[0]
    handler(arg.strip(), state)
    return True


class _CommandCompleter(Completer):
    """Completes slash command names while the line is a single word."""

    def get_completions(self, document, complete_event):
        word = document.text_before_cursor
        if not word.startswith("/") or " " in word:
            return

        for name, (_, help_text, hint) in COMMANDS.items():
            if name.startswith(word):
                yield Completion(
                    name,
                    start_position=-len(word),
                    display=f"{name} {hint}".rstrip(),
                    display_meta=help_text,
                )


# ========================================================================
# Evaluation
# ========================================================================

def _normalize(text: str) -> str:
    """Strip invisible characters and join backslash continuations."""
    return _CONTINUATION_RE.sub(" ", _INVISIBLE_RE.sub("", text))


def render_source(text: str, state: ReplState) -> str:
    """Parse text, remember its AST and return what the shell prints."""
    parser = TemplateParser(text, pretty=True)
    parser.parse()
    state.last = parser.execute()

    rendered = str(state.last)
    if state.show_tree:
        return f"{parser.format_syntax_tree()}\n{rendered}"
    return rendered


def _report(exc: TemplateError) -> None:
    print(f"Error: {exc}", file=sys.stderr)
    if debug_py_trace_enabled():
        print("\nPython traceback:", file=sys.stderr)
        traceback.print_tb(exc.__traceback__, file=sys.stderr)


# ========================================================================
# Prompt
# ========================================================================

def _key_bindings() -> KeyBindings:
    bindings = KeyBindings()

    @bindings.add("enter")
    def _submit_or_newline(event):
        buf = event.app.current_buffer
        text = buf.text

        # Commands and one-line templates submit at once; a longer
        # template is submitted by an empty line.
        if text.startswith("/") or ("\n" not in text and not text.endswith("\\")):
            buf.validate_and_handle()
        elif text.rsplit("\n", 1)[-1].strip() == "":
            buf.text = text.rstrip()
            buf.validate_and_handle()
        else:
            buf.insert_text("\n")

    return bindings


def _make_session() -> PromptSession:
    return PromptSession(
        history=InMemoryHistory(),
        lexer=TemplateLexer(),
        completer=_CommandCompleter(),
        complete_while_typing=True,
        key_bindings=_key_bindings(),
        multiline=True,
        prompt_continuation="... ",
    )


def repl() -> None:
    """Read templates until end of input, printing each one's rendering."""
    configure_logging()
    state = ReplState()
    session = _make_session()

    print("infra-template repl (Ctrl-D to exit, / for commands)")

    while True:
        try:
            text = _normalize(session.prompt("tmpl> "))
        except KeyboardInterrupt:
            continue
        except EOFError:
            break

        if not text.strip() or _handle_slash(text, state):
            continue

        try:
            print(render_source(text, state))
        except TemplateError as exc:
            _report(exc)


if __name__ == "__main__":
    repl()
