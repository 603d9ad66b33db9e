"""Interactive prompts for confirming actions and choosing packages."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence

from prompt_toolkit import print_formatted_text, prompt
from prompt_toolkit.validation import Validator

from lure.db import Package
from lure.pager import Pager, syntax_highlight_bash

_YES = frozenset({"y", "yes"})
_NO = frozenset({"n", "no"})
_SEPARATOR_RE = re.compile(r"[\s,]+")


class UserAbortError(Exception):
    """The user chose not to continue."""


def yes_no_prompt(msg: str, interactive: bool, default: bool) -> bool:
    """Ask a yes or no question; ``default`` is the answer when not interactive or left blank."""
    if not interactive:
        return default
    hint = "[Y/n]" if default else "[y/N]"
    validator = Validator.from_callable(
        lambda text: text.strip().lower() in _YES | _NO | {""},
        error_message="Please answer yes or no",
        move_cursor_to_end=True,
    )
    answer = prompt(f"{msg} {hint} ", validator=validator, validate_while_typing=False)
    answer = answer.strip().lower()
    if not answer:
        return default
    return answer in _YES


def show_script(path: str, name: str, style: str) -> None:
    """Display the script at ``path`` in the pager, highlighted with ``style``."""
    with open(path, encoding="utf-8", errors="replace") as fl:
        text = syntax_highlight_bash(fl, style)
    Pager(name, text).run()


def prompt_view_script(script: str, name: str, style: str, interactive: bool) -> None:
    """Offer to show a build script, then ask whether to continue.

    Raises UserAbortError if the user declines to continue after reading it.
    """
    if not interactive:
        return
    view = yes_no_prompt(
        f"Would you like to view the build script for {name}", interactive, False
    )
    if not view:
        return
    show_script(script, name, style)
    if not yes_no_prompt("Would you still like to continue?", interactive, False):
        raise UserAbortError("User chose not to continue after reading script")


def _print_options(message: str, names: Sequence[str]) -> None:
    print_formatted_text(message)
    for number, name in enumerate(names, start=1):
        print_formatted_text(f"  {number}) {name}")


def _parse_numbers(text: str) -> list[str]:
    return [token for token in _SEPARATOR_RE.split(text.strip()) if token]


def _valid_number(token: str, count: int) -> bool:
    return token.isdigit() and 1 <= int(token) <= count


def _choose_one(message: str, names: Sequence[str]) -> int:
    _print_options(message, names)
    validator = Validator.from_callable(
        lambda text: not text.strip() or _valid_number(text.strip(), len(names)),
        error_message=f"Enter a number from 1 to {len(names)}",
        move_cursor_to_end=True,
    )
    answer = prompt("Choice [1]: ", validator=validator, validate_while_typing=False).strip()
    return int(answer) - 1 if answer else 0


def _choose_many(message: str, names: Sequence[str]) -> list[int]:
    _print_options(message, names)
    validator = Validator.from_callable(
        lambda text: all(_valid_number(t, len(names)) for t in _parse_numbers(text)),
        error_message=f"Enter numbers from 1 to {len(names)}, separated by spaces or commas",
        move_cursor_to_end=True,
    )
    answer = prompt("Choices: ", validator=validator, validate_while_typing=False)
    return sorted({int(token) - 1 for token in _parse_numbers(answer)})


def pkg_prompt(options: Sequence[Package], verb: str, interactive: bool) -> Package:
    """Ask the user to pick one of several packages; the first is picked when not interactive."""
    if not interactive:
        return options[0]
    names = [f"{opt.repository}/{opt.name} {opt.version}" for opt in options]
    return options[_choose_one(f"Choose which package to {verb}", names)]


def flatten_pkgs(
    found: Mapping[str, Sequence[Package]], verb: str, interactive: bool
) -> list[Package]:
    """Reduce each list of matching packages to one, asking the user where several match."""
    out: list[Package] = []
    for pkgs in found.values():
        if len(pkgs) > 1 and interactive:
            out.append(pkg_prompt(pkgs, verb, interactive))
        elif len(pkgs) == 1 or not interactive:
            out.append(pkgs[0])
    return out


def choose_opt_depends(options: Sequence[str], verb: str, interactive: bool) -> list[str]:
    """Let the user pick any number of optional dependencies.

    Each option may carry a description after ``": "``; only the name before it is returned.
    """
    if not interactive:
        return []
    indices = _choose_many("Choose which optional package(s) to install", options)
    return [options[i].split(": ", 1)[0] for i in indices]