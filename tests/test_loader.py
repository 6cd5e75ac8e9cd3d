import numpy as np
import pytest

from hydrotraj.errors import ConfigurationError
from hydrotraj.network.loader import (
    abundances_from_mass_fractions,
    build_zone,
    load_network,
    load_zone_file,
    remove_isolated_species,
)


def test_load_bundled_network(data_dir) -> None:
    net = load_network(data_dir / "alpha_net.yml")
    assert net.n_species == 6
    assert "fe56" in net.isolated_species()


def test_remove_isolated_species_keeps_abundant(data_dir, caplog) -> None:
    net = load_network(data_dir / "alpha_net.yml")
    with caplog.at_level("INFO", logger="hydrotraj.network.loader"):
        pruned, removed = remove_isolated_species(net, {"he4": 1.0})
    assert removed == ["fe56"]
    assert "fe56" not in pruned.index
    assert any("fe56" in rec.message for rec in caplog.records)
    kept, removed = remove_isolated_species(net, {"he4": 0.9, "fe56": 0.1})
    assert removed == []
    assert "fe56" in kept.index


def test_zone_file_to_abundances(data_dir) -> None:
    net = load_network(data_dir / "alpha_net.yml")
    zone_file = load_zone_file(data_dir / "zone_he4.yml")
    zone = build_zone(net, zone_file, t9=10.0, rho=1.0e8, mu_nue_kT=float("-inf"))
    assert zone.abundances[net.index["he4"]] == pytest.approx(0.99 / 4.0)
    assert float(np.sum(zone.abundances * net.a)) == pytest.approx(1.0)
    assert zone.labels == ("0", "0", "0")
    assert zone.mu_nue_kT == float("-inf")


def test_unknown_zone_species_rejected(alpha_net) -> None:
    with pytest.raises(ConfigurationError):
        abundances_from_mass_fractions(alpha_net, {"u238": 1.0})


def test_mass_fraction_sum_warning(alpha_net, caplog) -> None:
    with caplog.at_level("WARNING", logger="hydrotraj.network.loader"):
        abundances_from_mass_fractions(alpha_net, {"he4": 0.5})
    assert any("sum to" in rec.message for rec in caplog.records)


def test_negative_mass_fraction_rejected(tmp_path) -> None:
    path = tmp_path / "zone.yml"
    path.write_text("mass_fractions:\n  he4: -0.1\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_zone_file(path)


def test_missing_file_raises(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        load_network(tmp_path / "absent.yml")
