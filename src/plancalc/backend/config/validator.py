"""Utilities for validating catalogue and tax regime data and surfacing issues."""

from __future__ import annotations

import argparse
from collections import Counter
from typing import Sequence

from .catalog import (
    ServiceBlueprint,
    ServiceCatalog,
    TaxRegimeConfig,
    available_tax_regimes,
    load_service_catalog,
    load_tax_regime,
)

_SHARE_TOLERANCE = 1e-6


def _format_scope(scope: str, message: str) -> str:
    return f"{scope}: {message}"


def _validate_share_total(scope: str, label: str, shares: Sequence[float]) -> list[str]:
    total = sum(shares)
    if total > 1 + _SHARE_TOLERANCE:
        return [
            _format_scope(
                scope,
                f"{label} shares add up to {total:.4f}, exceeding 100% of the total",
            )
        ]
    return []


def _validate_blueprint(blueprint: ServiceBlueprint) -> list[str]:
    errors: list[str] = []
    scope = f"services.{blueprint.id}"
    defaults = blueprint.defaults

    if not blueprint.display.title.strip():
        errors.append(_format_scope(scope, "copy.title must not be blank"))

    fences = defaults.pricing_fences
    if fences is not None and not fences.min <= defaults.base_price <= fences.stretch:
        errors.append(
            _format_scope(
                scope,
                (
                    f"base price {defaults.base_price} falls outside the pricing "
                    f"fences [{fences.min}, {fences.stretch}]"
                ),
            )
        )

    if defaults.locked_rate and defaults.locked_volume:
        errors.append(
            _format_scope(scope, "rate and volume cannot both be locked by default")
        )

    return errors


def validate_service_catalog(catalog: ServiceCatalog) -> list[str]:
    """Return a list of validation errors for the service catalogue."""

    errors: list[str] = []

    if not catalog.services:
        errors.append(_format_scope("services", "catalogue declares no services"))
        return errors

    duplicate_titles = [
        title
        for title, count in Counter(
            blueprint.display.title for blueprint in catalog.services
        ).items()
        if count > 1
    ]
    if duplicate_titles:
        errors.append(
            _format_scope(
                "services", f"duplicate service titles detected: {sorted(duplicate_titles)}"
            )
        )

    for blueprint in catalog.services:
        errors.extend(_validate_blueprint(blueprint))

    defaults = [blueprint.defaults for blueprint in catalog.services]
    errors.extend(
        _validate_share_total(
            "services", "capacity", [entry.share_of_capacity for entry in defaults]
        )
    )
    errors.extend(
        _validate_share_total(
            "services",
            "fixed cost",
            [entry.fixed_cost_share for entry in defaults if entry.fixed_cost_share is not None],
        )
    )
    errors.extend(
        _validate_share_total(
            "services",
            "variable cost",
            [
                entry.variable_cost_share
                for entry in defaults
                if entry.variable_cost_share is not None
            ],
        )
    )
    errors.extend(
        _validate_share_total(
            "services",
            "target net",
            [entry.target_net_share for entry in defaults if entry.target_net_share is not None],
        )
    )

    return errors


def validate_tax_regime(regime: TaxRegimeConfig) -> list[str]:
    """Return a list of validation errors for a tax regime."""

    errors: list[str] = []
    scope = f"tax_regimes.{regime.id}"

    rates = [bracket.rate for bracket in regime.brackets]
    if rates != sorted(rates):
        errors.append(_format_scope(scope, "bracket rates should not decrease"))

    first_upper = regime.brackets[0].upper_bound
    if first_upper is not None and regime.zvw_maximum_income < first_upper / 10:
        errors.append(
            _format_scope(
                scope,
                "Zvw maximum income looks implausibly low compared to the first bracket",
            )
        )

    if regime.zelfstandigenaftrek == 0 and regime.startersaftrek > 0:
        errors.append(
            _format_scope(
                scope,
                "startersaftrek is only granted on top of the zelfstandigenaftrek",
            )
        )

    return errors


def validate_all(regime_ids: Sequence[str] | None = None) -> dict[str, list[str]]:
    """Validate the catalogue plus tax regimes and return issues keyed by scope."""

    results: dict[str, list[str]] = {
        "services": validate_service_catalog(load_service_catalog())
    }
    for regime_id in regime_ids or available_tax_regimes():
        results[regime_id] = validate_tax_regime(load_tax_regime(regime_id))
    return results


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Validate the service catalogue and tax regimes and report issues "
            "helpful to contributors."
        )
    )
    parser.add_argument(
        "regimes",
        nargs="*",
        help="Specific tax regimes to validate (defaults to all configured regimes)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for running validations from the command line."""

    parser = _build_argument_parser()
    args = parser.parse_args(argv)
    regime_ids = args.regimes or list(available_tax_regimes())

    exit_code = 0

    catalog_issues = validate_service_catalog(load_service_catalog())
    if catalog_issues:
        exit_code = 1
        print(f"[services] {len(catalog_issues)} issue(s) detected:")
        for issue in catalog_issues:
            print(f"  - {issue}")
    else:
        print("[services] OK")

    for regime_id in regime_ids:
        try:
            regime = load_tax_regime(regime_id)
        except FileNotFoundError as error:
            print(f"[{regime_id}] failed to load configuration: {error}")
            exit_code = 1
            continue

        issues = validate_tax_regime(regime)
        if issues:
            exit_code = 1
            print(f"[{regime_id}] {len(issues)} issue(s) detected:")
            for issue in issues:
                print(f"  - {issue}")
        else:
            print(f"[{regime_id}] OK")

    return exit_code


if __name__ == "__main__":  # pragma: no cover - CLI invocation
    raise SystemExit(main())
