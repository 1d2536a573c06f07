"""Placement contracts for directives.

Contracts describe where a directive is meant to be used, e.g. "csrf
belongs on a form". Violations are reported as warnings rather than
raised, so legacy templates keep compiling.

Thread Safety:
Contract is frozen (immutable). Safe to share across threads.

Example:
    >>> FORM_CONTRACT = DirectiveContract(allows_tags=("form",))
    >>> FORM_CONTRACT.validate("csrf", "div").message
    "'csrf' is intended for <form>, not <div>"

"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class DirectiveContract:
    """Placement rules for a directive.

    Attributes:
        allows_tags: Elements the directive is intended for (None = any).
        requires_value: The directive needs a non-empty expression.

    """

    allows_tags: tuple[str, ...] | None = None
    requires_value: bool = False

    def validate(self, directive: str, tag: str, expression: str = "x") -> ContractViolation | None:
        """Check a directive use.

        Args:
            directive: Directive name (without prefix)
            tag: Lower-cased tag name of the element
            expression: Directive expression

        Returns:
            ContractViolation if the use breaks the contract, None otherwise
        """
        if self.requires_value and not expression.strip():
            return ContractViolation(
                directive=directive,
                violation_type="missing_value",
                message=f"'{directive}' needs an expression",
            )
        if self.allows_tags is not None and tag not in self.allows_tags:
            expected = ", ".join(f"<{t}>" for t in self.allows_tags)
            return ContractViolation(
                directive=directive,
                violation_type="wrong_element",
                message=f"'{directive}' is intended for {expected}, not <{tag}>",
            )
        return None


@dataclass(frozen=True, slots=True)
class ContractViolation:
    """A broken contract, reported as a warning."""

    directive: str
    violation_type: str
    message: str

    def __str__(self) -> str:
        return self.message


# Common contracts
FORM_CONTRACT = DirectiveContract(allows_tags=("form",))

FIELD_CONTRACT = DirectiveContract(allows_tags=("input", "select", "textarea"), requires_value=True)


__all__ = [
    "ContractViolation",
    "DirectiveContract",
    "FIELD_CONTRACT",
    "FORM_CONTRACT",
]
