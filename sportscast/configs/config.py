"""Configuration loader for ingestion sources."""

from pathlib import Path

import yaml

from sportscast.configs.settings import Settings, get_settings


class Config:
    """Configuration for the ingestion pipeline."""

    CONFIG_DIR = Path(__file__).parent.resolve()

    @classmethod
    def load_ingestion_config(
        cls,
        path: Path | None = None,
        settings: Settings | None = None,
    ) -> dict:
        """
        Load the YAML configuration for ingestion sources.

        Placeholders like ${API_FOOTBALL_KEY} are substituted from settings
        before parsing. Unset settings substitute to an empty string.
        """
        settings = settings or get_settings()
        config_path = Path(path) if path else settings.INGESTION_CONFIG_PATH

        if not config_path.exists():
            raise FileNotFoundError(f"Missing config at {config_path}")

        with open(config_path, encoding="utf-8") as f:
            content = f.read()

        for key, value in settings.model_dump().items():
            placeholder = f"${{{key}}}"
            if placeholder not in content:
                continue
            if value is None:
                val_str = ""
            elif hasattr(value, "get_secret_value"):
                val_str = value.get_secret_value()
            else:
                val_str = str(value)
            content = content.replace(placeholder, val_str)

        return yaml.safe_load(content) or {}
