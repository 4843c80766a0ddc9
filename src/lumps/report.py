from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ValidationReport:
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    # Preformatted per-item blocks, printed only on request.
    details: tuple[str, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.errors

    def extend(
        self,
        *,
        errors: Iterable[str] = (),
        warnings: Iterable[str] = (),
        details: Iterable[str] = (),
    ) -> ValidationReport:
        return ValidationReport(
            errors=self.errors + tuple(errors),
            warnings=self.warnings + tuple(warnings),
            details=self.details + tuple(details),
        )

    def merge(self, other: ValidationReport) -> ValidationReport:
        return self.extend(errors=other.errors, warnings=other.warnings, details=other.details)


def format_report(
    report: ValidationReport,
    *,
    title: str = "Validation report",
    show_details: bool = False,
) -> str:
    lines = [
        f"=== {title} ===",
        f"Status: {'VALID' if report.valid else 'INVALID'}"
        f" ({len(report.errors)} errors, {len(report.warnings)} warnings)",
    ]
    if report.errors:
        lines.append("Errors:")
        lines.extend(f"  - {error}" for error in report.errors)
    if report.warnings:
        lines.append("Warnings:")
        lines.extend(f"  - {warning}" for warning in report.warnings)
    if show_details and report.details:
        lines.append("Coordinate details:")
        for block in report.details:
            lines.append("")
            lines.extend(f"  {line}" for line in block.splitlines())
    return "\n".join(lines)
