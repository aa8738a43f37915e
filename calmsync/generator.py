"""Generation pipeline: build, validate, render."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from calmsync.config import get_settings
from calmsync.render import OutputFormat, render
from calmsync.schema import Architecture
from calmsync.validation import ValidationError, ValidationRule, default_rules, validate

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GenerationResult:
    """Rendered text plus validation findings.

    When validation fails nothing is rendered and ``output`` is empty.
    """
    output: str
    fmt: OutputFormat
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


class Generator:
    """Runs a model builder and renders its result."""

    __slots__ = ("build", "rules")

    def __init__(
        self,
        build: Callable[[], Architecture],
        rules: Sequence[ValidationRule] | None = None,
    ) -> None:
        self.build = build
        self.rules = list(rules) if rules is not None else default_rules()

    def generate(
        self, fmt: str | OutputFormat | None = None, *, validate_model: bool | None = None
    ) -> GenerationResult:
        """Build the model, validate it unless disabled, and render it in ``fmt``."""
        settings = get_settings()
        output_format = OutputFormat.parse(fmt if fmt is not None else settings.default_format)
        check = settings.validate_on_generate if validate_model is None else validate_model

        arch = self.build()
        if check:
            errors = validate(arch, self.rules)
            if errors:
                logger.warning("Validation failed for %s: %d error(s)", arch.unique_id, len(errors))
                return GenerationResult(output="", fmt=output_format, errors=errors)

        output = render(arch, output_format)
        logger.info("Generated %s for %s (%d chars)", output_format.value, arch.unique_id, len(output))
        return GenerationResult(output=output, fmt=output_format)
