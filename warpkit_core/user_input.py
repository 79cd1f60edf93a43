"""
Interactive input sources.

The pipeline never reads the console itself: anything interactive takes a
:class:`UserInputSource`.  The console implementation is for the CLI; the
scripted one replays canned answers (tests, unattended runs).
"""

from __future__ import annotations

import getpass
from dataclasses import dataclass, field
from typing import Iterable, Protocol

from warpkit_core.transaction import parse_address


class UserInputSource(Protocol):

    def ask(self, prompt: str, default: str | None = None) -> str: ...

    def ask_secret(self, prompt: str) -> str: ...

    def confirm(self, prompt: str, default: bool = False) -> bool: ...


_YES = ("y", "yes")
_NO = ("n", "no")


class ConsoleInputSource:
    """Reads from the terminal; secrets go through ``getpass``."""

    def ask(self, prompt: str, default: str | None = None) -> str:
        suffix = f" [{default}]" if default else ""
        answer = input(f"{prompt}{suffix}: ").strip()
        return answer or (default or "")

    def ask_secret(self, prompt: str) -> str:
        return getpass.getpass(f"{prompt}: ")

    def confirm(self, prompt: str, default: bool = False) -> bool:
        hint = "Y/n" if default else "y/N"
        while True:
            answer = input(f"{prompt} ({hint}): ").strip().lower()
            if not answer:
                return default
            if answer in _YES:
                return True
            if answer in _NO:
                return False
            print("Please answer y or n.")


class ScriptedInputSource:
    """Replays answers in order; running out is an error."""

    def __init__(self, answers: Iterable[str]):
        self._answers = list(answers)
        self.prompts: list[str] = []

    def _pop(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self._answers:
            raise EOFError(f"no scripted answer left for {prompt!r}")
        return self._answers.pop(0)

    def ask(self, prompt: str, default: str | None = None) -> str:
        return self._pop(prompt) or (default or "")

    def ask_secret(self, prompt: str) -> str:
        return self._pop(prompt)

    def confirm(self, prompt: str, default: bool = False) -> bool:
        answer = self._pop(prompt).strip().lower()
        if not answer:
            return default
        return answer in _YES


@dataclass
class ProposalRequest:
    contract: str
    descriptions: list[str] = field(default_factory=list)


def collect_proposal_request(
    source: UserInputSource,
    default_contract: str | None = None,
) -> ProposalRequest | None:
    """
    Ask for a contract and one or more proposal descriptions.

    An empty description ends the list.  Returns ``None`` when the user
    declines the final confirmation or enters nothing; an unparseable
    contract address raises ArgumentEncodingError straight away.
    """
    contract = source.ask("DAO contract address", default_contract)
    if not contract:
        return None
    parse_address(contract, "contract address")

    descriptions: list[str] = []
    while True:
        text = source.ask(f"Proposal #{len(descriptions) + 1} description (empty to finish)").strip()
        if not text:
            break
        descriptions.append(text)
    if not descriptions:
        return None

    if not source.confirm(f"Submit {len(descriptions)} proposal(s) to {contract}?", default=True):
        return None
    return ProposalRequest(contract=contract, descriptions=descriptions)
