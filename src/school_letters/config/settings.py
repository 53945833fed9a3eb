"""Application settings using Pydantic Settings."""

import logging
import warnings

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Phrases emphasised in every generated letter. Order matters: each rule runs
# over the output of the previous one.
DEFAULT_HIGHLIGHT_RULES: list[tuple[str, str]] = [
    (r"([0-9.%]+) of the ([0-9]+) students", r"\1 of the \2 students"),
    (
        r"on average ([0-9]+) children could become infected",
        r"on average \1 children could become infected,",
    ),
    (r"([0-9]+) of whom could be hospitalized", r"\1 of whom could be hospitalized"),
    (r"([0-9]+) infections and", r"\1 infections and"),
    (r"([0-9]+) hospitalizations", r"\1 hospitalizations"),
]


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Logging
    log_level: str = "INFO"

    # School data (env: TEST_DATA=TRUE switches to the test roster)
    school_data_path: str = "school_vax_data.csv"
    test_school_data_path: str = "test_school_vax_data.csv"
    use_test_data: bool = Field(default=False, validation_alias="TEST_DATA")

    # Simulation
    simulation_dir: str = "simulation_data"
    simulation_csv: str = "simulation_data.csv"
    parameters_path: str = "params.json"
    simulation_engine: str = ""  # "package.module:callable"

    # Reports
    reports_dir: str = "reports"
    folder_group: str = "group"  # empty string = flat layout
    excluded_groups: list[str] = []  # matched against folder_group; ignored when flat
    template_path: str = "measles.qmd"
    letter_head: str = "letter_head.docx"
    renderer_command: str = "quarto"
    render_timeout: int = 600
    errors_path: str = "generate_reports_errors.json"

    # Document patching
    workspace_root: str = ""  # empty = system temp dir
    highlight_rules: list[tuple[str, str]] = DEFAULT_HIGHLIGHT_RULES

    @property
    def active_school_data_path(self) -> str:
        """School roster to read, honouring TEST_DATA."""
        if self.use_test_data:
            return self.test_school_data_path
        return self.school_data_path

    def configure_logging(self) -> None:
        """Configure logging for the application."""
        logging.basicConfig(level=self.log_level)
        # pandas emits these for mixed-type CSV columns; the loaders coerce types
        warnings.filterwarnings("ignore", message="Columns .* have mixed types")


# Global settings instance
settings = Settings()
settings.configure_logging()
