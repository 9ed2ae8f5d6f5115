from collections.abc import Callable
from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest

import vkcsgen


def _assert_config_code(exc_info: pytest.ExceptionInfo[Exception], code: str) -> None:
    err = exc_info.value
    assert getattr(err, "code") == code
    assert getattr(err, "code") in vkcsgen.VALID_ERROR_CODES


def test_import_vkcsgen_module_smoke() -> None:
    assert callable(vkcsgen.main)


def test_build_argument_parser_exposes_surface_and_defaults() -> None:
    parser = vkcsgen.build_argument_parser()
    option_actions = {
        option: action for action in parser._actions for option in action.option_strings
    }

    expected_options = {
        "--vk-xml",
        "--output-dir",
        "--namespace",
        "--api",
        "--feature",
        "--author",
        "--platform",
        "--list-features",
        "--list-extensions",
        "--filter",
    }

    assert expected_options.issubset(option_actions.keys())
    assert option_actions["--vk-xml"].default == vkcsgen.DEFAULT_VK_XML
    assert option_actions["--output-dir"].default == vkcsgen.DEFAULT_OUTPUT_DIR
    assert option_actions["--api"].default == "vulkan"
    assert option_actions["--namespace"].default is None
    assert option_actions["--feature"].default is None
    assert option_actions["--list-features"].default is False
    assert option_actions["--list-extensions"].default is False
    assert option_actions["--filter"].default is None


def test_parse_args_enforces_discovery_mutual_exclusion() -> None:
    with pytest.raises(SystemExit) as exc_info:
        vkcsgen.parse_args(["--list-features", "--list-extensions"])

    assert exc_info.value.code == 2


def test_parse_args_unknown_flag_exits_with_code_2() -> None:
    with pytest.raises(SystemExit) as exc_info:
        vkcsgen.parse_args(["--not-a-flag"])

    assert exc_info.value.code == 2


def test_parse_args_collects_repeated_and_space_separated_names() -> None:
    args = vkcsgen.parse_args(
        [
            "--feature",
            "VK_VERSION_1_0",
            "VK_VERSION_1_1",
            "--feature",
            "VK_VERSION_1_2",
            "--author",
            "KHR",
        ]
    )

    assert args.feature == [["VK_VERSION_1_0", "VK_VERSION_1_1"], ["VK_VERSION_1_2"]]
    assert args.author == [["KHR"]]
    assert args.platform is None


def test_normalize_names_flattens_nested_lists() -> None:
    names = vkcsgen.normalize_names(
        [["KHR", "EXT"], ["NV"]], "--author", "INVALID_AUTHOR"
    )

    assert names == ("KHR", "EXT", "NV")


def test_normalize_names_rejects_non_string_entries() -> None:
    with pytest.raises(vkcsgen.ConfigError) as exc_info:
        vkcsgen.normalize_names([[1]], "--author", "INVALID_AUTHOR")

    _assert_config_code(exc_info, "INVALID_AUTHOR")


def test_validate_config_applies_cli_defaults(
    make_args: Callable[..., object],
) -> None:
    config = vkcsgen.validate_config(make_args())

    assert isinstance(config, vkcsgen.GenerateConfig)
    assert config.features == frozenset({"VK_VERSION_1_0"})
    assert config.authors == frozenset({"KHR", "EXT"})
    assert config.platforms == frozenset({"win32"})
    assert config.namespace == "Vulkan.Native"
    assert config.api == "vulkan"


def test_validate_config_uses_explicit_allow_lists(
    make_args: Callable[..., object],
) -> None:
    config = vkcsgen.validate_config(
        make_args(
            feature=[["VK_VERSION_1_0", "VK_VERSION_1_1"]],
            author=[["NV"]],
            platform=[["xlib", "wayland"]],
            namespace="Game.Interop.Vulkan",
        )
    )

    assert isinstance(config, vkcsgen.GenerateConfig)
    assert config.features == frozenset({"VK_VERSION_1_0", "VK_VERSION_1_1"})
    assert config.authors == frozenset({"NV"})
    assert config.platforms == frozenset({"xlib", "wayland"})
    assert config.namespace == "Game.Interop.Vulkan"


@pytest.mark.parametrize(
    ("overrides", "code"),
    [
        ({"feature": [["1.0"]]}, "INVALID_FEATURE_NAME"),
        ({"feature": [["VERSION"]]}, "INVALID_FEATURE_NAME"),
        ({"author": [["khr"]]}, "INVALID_AUTHOR"),
        ({"platform": [["Win32"]]}, "INVALID_PLATFORM"),
        ({"namespace": "Vulkan..Native"}, "INVALID_NAMESPACE"),
        ({"namespace": "1Vulkan"}, "INVALID_NAMESPACE"),
    ],
)
def test_validate_config_rejects_malformed_names(
    make_args: Callable[..., object], overrides: dict[str, object], code: str
) -> None:
    with pytest.raises(vkcsgen.ConfigError) as exc_info:
        vkcsgen.validate_config(make_args(**overrides))

    _assert_config_code(exc_info, code)
    assert exc_info.value.suggestion


def test_validate_config_discovery_mode_returns_discovery_config(
    make_args: Callable[..., object],
) -> None:
    config = vkcsgen.validate_config(
        make_args(list_extensions=True, filter="surface")
    )

    assert isinstance(config, vkcsgen.DiscoveryConfig)
    assert config.command == "list-extensions"
    assert config.filter_text == "surface"
    assert config.api == "vulkan"


def test_validate_config_list_features_command_name(
    make_args: Callable[..., object],
) -> None:
    config = vkcsgen.validate_config(make_args(list_features=True))

    assert isinstance(config, vkcsgen.DiscoveryConfig)
    assert config.command == "list-features"
    assert config.filter_text is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"list_features": True, "feature": [["VK_VERSION_1_0"]]},
        {"list_extensions": True, "author": [["KHR"]]},
        {"list_extensions": True, "namespace": "Vulkan.Native"},
    ],
)
def test_validate_config_rejects_cross_mode_conflicts(
    make_args: Callable[..., object], overrides: dict[str, object]
) -> None:
    with pytest.raises(vkcsgen.ConfigError) as exc_info:
        vkcsgen.validate_config(make_args(**overrides))

    _assert_config_code(exc_info, "CONFLICT_GENERATE_DISCOVERY")


@pytest.mark.parametrize(
    "overrides",
    [
        {"filter": "khr"},
        {"filter": "khr", "list_features": True},
    ],
)
def test_validate_config_filter_requires_list_extensions(
    make_args: Callable[..., object], overrides: dict[str, object]
) -> None:
    with pytest.raises(vkcsgen.ConfigError) as exc_info:
        vkcsgen.validate_config(make_args(**overrides))

    _assert_config_code(exc_info, "FILTER_WITHOUT_LIST")


def test_validate_config_missing_vk_xml_raises_path_not_found(
    make_args: Callable[..., object], missing_path: Path
) -> None:
    with pytest.raises(vkcsgen.ConfigError) as exc_info:
        vkcsgen.validate_config(make_args(vk_xml=missing_path))

    _assert_config_code(exc_info, "PATH_NOT_FOUND")
    assert "Vulkan-Docs" in exc_info.value.suggestion


def test_validate_path_exists_rejects_none_with_path_not_found() -> None:
    with pytest.raises(vkcsgen.ConfigError) as exc_info:
        vkcsgen.validate_path_exists(None, "--vk-xml")

    _assert_config_code(exc_info, "PATH_NOT_FOUND")


def test_validate_config_returns_frozen_dataclasses(
    make_args: Callable[..., object],
) -> None:
    config = vkcsgen.validate_config(make_args())

    with pytest.raises(FrozenInstanceError):
        config.namespace = "Other"  # type: ignore[misc]


def test_build_config_composes_parse_and_validate(
    existing_paths: dict[str, Path],
) -> None:
    config = vkcsgen.build_config(
        [
            "--vk-xml",
            str(existing_paths["vk_xml"]),
            "--feature",
            "VK_VERSION_1_0",
            "VK_VERSION_1_1",
            "--platform",
            "win32",
            "xlib",
        ]
    )

    assert isinstance(config, vkcsgen.GenerateConfig)
    assert config.features == frozenset({"VK_VERSION_1_0", "VK_VERSION_1_1"})
    assert config.authors == frozenset({"KHR", "EXT"})
    assert config.platforms == frozenset({"win32", "xlib"})


def test_config_error_rejects_unknown_code() -> None:
    with pytest.raises(ValueError):
        vkcsgen.ConfigError("NOT_A_CODE", "message")


def test_main_reports_config_error_and_exits_1(
    capsys: pytest.CaptureFixture[str], missing_path: Path
) -> None:
    with pytest.raises(SystemExit) as exc_info:
        vkcsgen.main(["--vk-xml", str(missing_path)])

    assert exc_info.value.code == 1
    err = capsys.readouterr().err
    assert "Config error [PATH_NOT_FOUND]" in err
    assert "Hint:" in err
