"""TEAL template compilation.

Escrow programs are TEAL templates with ``TMPL_<NAME>`` placeholders. The
compiler substitutes every placeholder, asks algod to assemble the result,
and returns the program bytes. The same template and parameters always give
the same bytes, so the escrow address is a pure function of its inputs.
"""

from __future__ import annotations

import base64
import re
from collections.abc import Mapping
from pathlib import Path

from algosdk.error import AlgodHTTPError

from tallysticks.domain.exceptions import CompilationError
from tallysticks.infrastructure.ledger import LedgerClient
from tallysticks.logging_config import get_logger

logger = get_logger(__name__)

_PLACEHOLDER = re.compile(r"TMPL_[A-Z0-9_]+")


def render_template(source: str, parameters: Mapping[str, int | str]) -> str:
    """Replace every ``TMPL_<KEY>`` in ``source`` with its parameter value.

    Longer keys are substituted first so ``TMPL_MAXIMUM_VALUE`` is never
    clobbered by a ``TMPL_MAXIMUM`` parameter.

    Raises:
        KeyError: Naming the placeholders left without a value.
    """
    rendered = source
    for key in sorted(parameters, key=len, reverse=True):
        rendered = rendered.replace(f"TMPL_{key}", str(parameters[key]))
    leftover = sorted(set(_PLACEHOLDER.findall(rendered)))
    if leftover:
        raise KeyError(", ".join(leftover))
    return rendered


class TemplateCompiler:
    """Compiles TEAL templates found under a directory via algod."""

    def __init__(self, client: LedgerClient, template_dir: Path) -> None:
        self._client = client
        self._template_dir = template_dir

    def read_template(self, template_name: str) -> str:
        path = self._template_dir / template_name
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CompilationError(template_name, f"cannot read {path}: {exc}") from exc

    def compile_source(self, template_name: str, source: str) -> bytes:
        """Assemble already-rendered TEAL source into program bytes."""
        try:
            response = self._client.compile(source)
        except AlgodHTTPError as exc:
            logger.error("compiler.failed", template=template_name, error=str(exc))
            raise CompilationError(template_name, str(exc)) from exc
        program = base64.b64decode(response["result"])
        logger.debug(
            "compiler.compiled",
            template=template_name,
            program_hash=response.get("hash"),
            size=len(program),
        )
        return program

    def compile(
        self, template_name: str, parameters: Mapping[str, int | str] | None = None
    ) -> bytes:
        """Render ``template_name`` with ``parameters`` and compile it.

        Raises:
            CompilationError: Template unreadable, a placeholder left unset,
                or algod refused the source. Never retried.
        """
        source = self.read_template(template_name)
        try:
            rendered = render_template(source, parameters or {})
        except KeyError as exc:
            raise CompilationError(template_name, f"unset placeholders {exc.args[0]}") from exc
        return self.compile_source(template_name, rendered)
