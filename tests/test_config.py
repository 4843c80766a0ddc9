from __future__ import annotations

from pathlib import Path

import pytest

from wadsheet.config import ConfigError, PackOptions, SheetLayout, load_pack_config, resolve_pack_config


def test_defaults() -> None:
    layout = SheetLayout()
    options = PackOptions()
    assert (layout.padding, layout.gap, layout.label_height, layout.guideline_offset, layout.label_offset) == (
        12,
        8,
        20,
        3,
        16,
    )
    assert (options.target_size, options.max_size, options.max_attempts) == (1024, 2048, 10)
    assert layout.cell_size(10, 10) == (42, 62)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"padding": -1},
        {"guideline_offset": 13},
        {"label_offset": 40},
    ],
)
def test_layout_rejects_inconsistent_values(kwargs: dict[str, int]) -> None:
    with pytest.raises(ConfigError):
        SheetLayout(**kwargs)


def test_options_reject_non_positive_values() -> None:
    with pytest.raises(ConfigError, match="max_attempts"):
        PackOptions(max_attempts=0)


def test_target_is_clamped_to_max() -> None:
    assert PackOptions(target_size=4096, max_size=2048).effective_target == 2048


def test_load_pack_config(tmp_path: Path) -> None:
    path = tmp_path / "pack.json"
    path.write_text('{"layout": {"padding": 16}, "options": {"max_size": 4096}}')
    options, layout = load_pack_config(path)

    assert layout.padding == 16
    assert layout.gap == 8
    assert options.max_size == 4096
    assert options.target_size == 1024


def test_load_pack_config_rejects_unknown_keys(tmp_path: Path) -> None:
    path = tmp_path / "pack.json"
    path.write_text('{"layout": {"margin": 2}}')
    with pytest.raises(ConfigError, match="invalid pack config"):
        load_pack_config(path)


def test_load_pack_config_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="failed to read"):
        load_pack_config(tmp_path / "nope.json")


def test_resolve_applies_overrides(tmp_path: Path) -> None:
    path = tmp_path / "pack.json"
    path.write_text('{"options": {"target_size": 256, "max_attempts": 3}}')
    options, _ = resolve_pack_config(path, max_size=512)
    assert (options.target_size, options.max_size, options.max_attempts) == (256, 512, 3)

    options, layout = resolve_pack_config()
    assert options == PackOptions()
    assert layout == SheetLayout()
