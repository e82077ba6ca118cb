"""Configuration loading and management."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
import tomllib

from .models import (
    CODE_INFO_NAME,
    FENCE_MARK_NAME,
    FENCED_CODE_NAME,
    HEADING_SCALE,
    MARKER_NODE_NAMES,
    SPACED_MARKER_NAMES,
    MarkerPolicy,
    RenderPolicy,
)


@dataclass
class EditorConfig:
    """Configuration for one editor instance.

    Attributes:
        marker_node_names: Syntax node names treated as hideable markers.
        spaced_marker_names: Marker names whose trailing space is hidden too.
        code_info_name: Syntax node name of a fence language tag.
        fenced_code_name: Syntax node name of a fenced code construct.
        fence_mark_name: Syntax node name of fence markers.
        hide_fence_code_marks: Hide fence markers outside the cursor's block.
        heading_scale: Scale factors for heading levels 1 to 6.
        code_block_style: Tag fenced code lines by role.
        show_code_info_badge: Badge fence language tags.
        max_document_size: Maximum document length, in characters, accepted
            by the codec.

    Examples:
        EditorConfig(hide_fence_code_marks=True, heading_scale=(2, 1.5, 1.2, 1, 1, 1))
    """

    # Marker policy
    marker_node_names: tuple[str, ...] = MARKER_NODE_NAMES
    spaced_marker_names: tuple[str, ...] = SPACED_MARKER_NAMES
    code_info_name: str = CODE_INFO_NAME
    fenced_code_name: str = FENCED_CODE_NAME
    fence_mark_name: str = FENCE_MARK_NAME
    hide_fence_code_marks: bool = False

    # Render policy
    heading_scale: tuple[float, ...] = HEADING_SCALE
    code_block_style: bool = True
    show_code_info_badge: bool = True

    # Limits
    max_document_size: int = 10 * 1024 * 1024

    def marker_policy(self) -> MarkerPolicy:
        return MarkerPolicy(
            marker_node_names=frozenset(self.marker_node_names),
            spaced_marker_names=frozenset(self.spaced_marker_names),
            code_info_name=self.code_info_name,
            fenced_code_name=self.fenced_code_name,
            fence_mark_name=self.fence_mark_name,
            hide_fence_code_marks=self.hide_fence_code_marks,
        )

    def render_policy(self) -> RenderPolicy:
        return RenderPolicy(
            heading_scale=tuple(float(scale) for scale in self.heading_scale),
            code_block_style=self.code_block_style,
            show_code_info_badge=self.show_code_info_badge,
        )


class ConfigError(ValueError):
    """Exception raised when configuration values are invalid.

    Examples:
        raise ConfigError("`heading_scale` must list exactly 6 values")
    """


def load_config(search_path: Path) -> EditorConfig:
    """Load configuration from the nearest config file.

    Walks parent directories from `search_path` to the filesystem root, reading
    the ``[tool.markdown-lens]`` table from `pyproject.toml` and the
    ``[markdown-lens]`` or ``[tool.markdown-lens]`` table from
    `.markdown-lens.toml` when present. Returns default values when no
    configuration is found. TOML files that cannot be read or decoded are
    skipped.

    Args:
        search_path: Directory used as the starting point for configuration lookup.

    Returns:
        EditorConfig: Loaded configuration with defaults applied when necessary.

    Raises:
        ConfigError: If the table is present but not a mapping or contains
            unsupported keys.

    Examples:
        load_config(Path("notes"))
    """
    current = search_path.resolve()

    while True:
        pyproject_config = _load_from_file(
            current / "pyproject.toml", table_paths=[("tool", "markdown-lens")]
        )
        if pyproject_config is not None:
            return normalize_config(pyproject_config)

        dotfile_config = _load_from_file(
            current / ".markdown-lens.toml",
            table_paths=[("markdown-lens",), ("tool", "markdown-lens")],
        )
        if dotfile_config is not None:
            return normalize_config(dotfile_config)

        parent = current.parent
        if parent == current:
            break
        current = parent

    return EditorConfig()


_MISSING = object()


def _load_from_file(
    config_file: Path, table_paths: list[tuple[str, ...]]
) -> EditorConfig | None:
    if not config_file.exists():
        return None

    try:
        with open(config_file, "rb") as stream:
            data = tomllib.load(stream)
    except (OSError, tomllib.TOMLDecodeError):
        return None

    for table_path in table_paths:
        raw_config = _extract_table(data, table_path)
        if raw_config is _MISSING:
            continue
        return _build_config_from_raw(raw_config, config_file, table_path)

    return None


def _extract_table(data: object, table_path: tuple[str, ...]) -> object:
    current = data
    for key in table_path:
        if not isinstance(current, dict) or key not in current:
            return _MISSING
        current = current[key]
    return current


def _build_config_from_raw(
    raw_config: object, config_file: Path, table_path: tuple[str, ...]
) -> EditorConfig:
    table_display = ".".join(table_path)

    if raw_config is None:
        return EditorConfig()

    if not isinstance(raw_config, dict):
        raise ConfigError(f"Invalid `[{table_display}]` settings in {config_file}")

    if not raw_config:
        return EditorConfig()

    try:
        return EditorConfig(**raw_config)
    except TypeError as error:
        raise ConfigError(f"Invalid `[{table_display}]` settings in {config_file}") from error


def normalize_config(config: EditorConfig) -> EditorConfig:
    """Convert TOML arrays into the tuples `EditorConfig` expects."""
    changes = {}
    for name in ("marker_node_names", "spaced_marker_names", "heading_scale"):
        value = getattr(config, name)
        if isinstance(value, list):
            changes[name] = tuple(value)
    if not changes:
        return config
    return replace(config, **changes)


def validate_config(config: EditorConfig) -> None:
    """Validate an `EditorConfig` instance.

    Args:
        config: Configuration to validate.

    Returns:
        None.

    Raises:
        ConfigError: If node-name lists are malformed, the heading scale does
            not hold six positive numbers, flags are not booleans, or the size
            limit is not a positive integer.

    Examples:
        validate_config(EditorConfig(hide_fence_code_marks=True))
    """
    config = normalize_config(config)

    for name in ("marker_node_names", "spaced_marker_names"):
        names = getattr(config, name)
        if not isinstance(names, tuple) or not all(
            isinstance(item, str) and item for item in names
        ):
            raise ConfigError(f"`{name}` must be a list of non-empty strings")

    for name in ("code_info_name", "fenced_code_name", "fence_mark_name"):
        value = getattr(config, name)
        if not isinstance(value, str) or not value:
            raise ConfigError(f"`{name}` must be a non-empty string")

    scale = config.heading_scale
    if not isinstance(scale, tuple) or len(scale) != 6:
        raise ConfigError("`heading_scale` must list exactly 6 values")
    for value in scale:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ConfigError("`heading_scale` values must be positive numbers")

    for name in ("hide_fence_code_marks", "code_block_style", "show_code_info_badge"):
        if not isinstance(getattr(config, name), bool):
            raise ConfigError(f"`{name}` must be a boolean")

    _ensure_integers({"max_document_size": config.max_document_size})
    _ensure_positive({"max_document_size": config.max_document_size})


def apply_overrides(config: EditorConfig, **overrides: object) -> EditorConfig:
    """Apply override values to an `EditorConfig`.

    Args:
        config: Base configuration to update.
        overrides: Override values keyed by configuration field name; values set to
            None are ignored.

    Returns:
        EditorConfig: New configuration with the provided overrides applied. The
        original configuration is returned when no changes are supplied.

    Raises:
        TypeError: If an override name is not defined on `EditorConfig`.

    Examples:
        updated = apply_overrides(config, hide_fence_code_marks=True)
    """
    changes = {key: value for key, value in overrides.items() if value is not None}
    if not changes:
        return config
    return replace(config, **changes)


def build_config(search_path: Path, **overrides: object) -> EditorConfig:
    """Load, override, and validate configuration.

    Args:
        search_path: Directory where configuration files are resolved.
        overrides: Override values keyed by configuration attributes; None values
            are ignored.

    Returns:
        EditorConfig: Validated configuration.

    Raises:
        ConfigError: If configuration loading or validation fails.

    Examples:
        config = build_config(Path.cwd(), hide_fence_code_marks=True)
    """
    config = load_config(search_path)
    config = apply_overrides(config, **overrides)
    config = normalize_config(config)
    validate_config(config)
    return config


def _ensure_positive(values: dict[str, int]) -> None:
    for key, value in values.items():
        if value <= 0:
            raise ConfigError(f"`{key}` must be a positive integer")


def _ensure_integers(values: dict[str, object]) -> None:
    for key, value in values.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"`{key}` must be an integer")
