"""Configuration with Pydantic validation and defaults.

Every value can be overridden from the environment with the ``KIJO_`` prefix
and ``__`` as the nested delimiter, e.g. ``KIJO_LAYOUT__CHAR_WIDTH=12``.
"""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LayoutSettings(BaseModel):
    """Node sizing and spacing for the layered layout."""

    node_height: float = 50
    min_node_width: float = 120
    char_width: float = 14  # approximate width of one CJK character
    padding: float = 40  # left + right padding inside a node
    symbol_affix: int = 3  # "[X] " around an information node symbol
    flow_decision_min_width: float = 180

    margin_x: float = 50
    margin_y: float = 50
    node_sep_lr: float = 80
    node_sep_tb: float = 60
    rank_sep_lr: float = 120
    rank_sep_tb: float = 80

    crossing_sweeps: int = Field(default=24, ge=0)

    def node_sep(self, direction: str) -> float:
        return self.node_sep_tb if direction == "TB" else self.node_sep_lr

    def rank_sep(self, direction: str) -> float:
        return self.rank_sep_tb if direction == "TB" else self.rank_sep_lr


class ParserSettings(BaseModel):
    """Statute tree parsing limits."""

    max_depth: int = Field(default=32, ge=1)


class EditorSettings(BaseModel):
    """Interactive editing session configuration."""

    max_history: int = Field(default=100, ge=0)


class KijoSettings(BaseSettings):
    """Top-level settings object."""

    model_config = SettingsConfigDict(
        env_prefix="KIJO_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    layout: LayoutSettings = Field(default_factory=LayoutSettings)
    parser: ParserSettings = Field(default_factory=ParserSettings)
    editor: EditorSettings = Field(default_factory=EditorSettings)
    log_level: str = "WARNING"


def get_settings() -> KijoSettings:
    """Build settings from defaults and the environment.

    A fresh object is returned on every call; callers that want to share one
    pass it around explicitly.
    """
    return KijoSettings()
