"""Interactive credential prompting for fallback registration."""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass

import click


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str


class CredentialPrompter(ABC):
    """Asks the operator for fallback registration credentials."""

    @abstractmethod
    def prompt_credentials(self, guest_name: str) -> Credentials | None:
        """Return credentials for guest_name, or None if the operator declines."""
        ...


class ClickCredentialPrompter(CredentialPrompter):
    """Prompts on the terminal. Concurrent guests take turns at the prompt."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._remembered: Credentials | None = None

    def prompt_credentials(self, guest_name: str) -> Credentials | None:
        with self._lock:
            if self._remembered is not None:
                return self._remembered
            click.echo(
                f"Direct registration of '{guest_name}' needs account credentials.", err=True
            )
            username = click.prompt("Username", default="", show_default=False, err=True)
            if not username.strip():
                return None
            password = click.prompt("Password", hide_input=True, err=True)
            self._remembered = Credentials(username=username.strip(), password=password)
            return self._remembered
