from plancalc.backend.config.catalog import load_service_catalog, load_tax_regime
from plancalc.backend.config.validator import (
    main,
    validate_all,
    validate_service_catalog,
    validate_tax_regime,
)


def test_current_configurations_are_valid() -> None:
    results = validate_all()
    assert all(not issues for issues in results.values()), results


def test_validator_flags_capacity_shares_above_one() -> None:
    catalog = load_service_catalog()
    first = catalog.services[0]
    inflated = first.model_copy(
        update={
            "defaults": first.defaults.model_copy(
                update={"share_of_capacity": first.defaults.share_of_capacity + 0.5}
            )
        }
    )
    broken = catalog.model_copy(update={"services": (inflated, *catalog.services[1:])})

    errors = validate_service_catalog(broken)

    assert any("capacity shares" in error for error in errors)


def test_validator_flags_base_price_outside_fences() -> None:
    catalog = load_service_catalog()
    first = catalog.services[0]
    cheap = first.model_copy(
        update={"defaults": first.defaults.model_copy(update={"base_price": 1.0})}
    )
    broken = catalog.model_copy(update={"services": (cheap, *catalog.services[1:])})

    errors = validate_service_catalog(broken)

    assert any(f"services.{first.id}" in error and "pricing fences" in error for error in errors)


def test_validator_flags_double_locks_and_duplicate_titles() -> None:
    catalog = load_service_catalog()
    first, second = catalog.services[:2]
    locked = first.model_copy(
        update={
            "defaults": first.defaults.model_copy(
                update={"locked_rate": True, "locked_volume": True}
            )
        }
    )
    twin = second.model_copy(update={"display": first.display})
    broken = catalog.model_copy(update={"services": (locked, twin, *catalog.services[2:])})

    errors = validate_service_catalog(broken)

    assert any("both be locked" in error for error in errors)
    assert any("duplicate service titles" in error for error in errors)


def test_validator_flags_decreasing_rates_and_orphan_startersaftrek() -> None:
    regime = load_tax_regime("dutch2025")
    brackets = list(regime.brackets)
    swapped = [
        brackets[0].model_copy(update={"rate": brackets[1].rate + 0.1}),
        *brackets[1:],
    ]
    broken = regime.model_copy(update={"brackets": swapped, "zelfstandigenaftrek": 0.0})

    errors = validate_tax_regime(broken)

    assert any("should not decrease" in error for error in errors)
    assert any("startersaftrek" in error for error in errors)


def test_cli_reports_ok(capsys) -> None:
    exit_code = main([])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "[services] OK" in output
    assert "[dutch2025] OK" in output


def test_cli_reports_unknown_regime(capsys) -> None:
    exit_code = main(["dutch1999"])

    output = capsys.readouterr().out
    assert exit_code == 1
    assert "[dutch1999] failed to load configuration" in output
