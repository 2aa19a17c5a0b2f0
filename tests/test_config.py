"""Tests for environment-driven settings and the objects built from them."""

import json

import pytest
from pydantic import ValidationError

from catalog_ingest.assembler import AssemblerConfig
from catalog_ingest.category_detector import CategoryDetector
from catalog_ingest.config import Settings
from catalog_ingest.models import PriceUnit
from catalog_ingest.reconciler import ReconcilerConfig


class TestSettings:

    def test_defaults(self, settings):
        assert settings.use_database is False
        assert settings.price_unit == "minor"
        assert settings.strict_quotes is True
        assert settings.image_only_rows is False
        assert settings.max_upload_bytes == 20 * 1024 * 1024

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("PRICE_UNIT", "MAJOR")
        monkeypatch.setenv("STRICT_QUOTES", "false")
        settings = Settings(_env_file=None)
        assert settings.price_unit == "major"
        assert settings.strict_quotes is False

    @pytest.mark.parametrize("field, value", [
        ("log_level", "LOUD"),
        ("log_format", "xml"),
        ("price_unit", "euros"),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: value})

    def test_log_level_upper_cased(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"

    def test_asyncpg_dsn(self):
        settings = Settings(_env_file=None, database_url="postgresql+asyncpg://u:p@db:5432/catalog")
        assert settings.asyncpg_dsn == "postgresql://u:p@db:5432/catalog"

    def test_lists(self):
        settings = Settings(
            _env_file=None,
            cors_origins="http://a, http://b,",
            allowed_image_schemes="HTTPS, ftp",
        )
        assert settings.cors_origin_list == ["http://a", "http://b"]
        assert settings.image_scheme_list == ["https", "ftp"]


class TestFromSettings:

    def test_assembler_config(self):
        config = AssemblerConfig.from_settings(
            Settings(_env_file=None, price_unit="major", strict_quotes=False, image_only_rows=True))
        assert config.price_unit == PriceUnit.MAJOR
        assert config.strict_quotes is False
        assert config.image_only_rows is True

    def test_reconciler_config(self):
        config = ReconcilerConfig.from_settings(
            Settings(_env_file=None, check_persisted_skus=False, allowed_image_schemes="https"))
        assert config.check_persisted_skus is False
        assert config.allowed_image_schemes == frozenset({"https"})

    def test_detector_rules_path(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps([{"category": "Lamps", "keywords": ["lamp"]}]))
        detector = CategoryDetector.from_settings(
            Settings(_env_file=None, category_rules_path=str(path), classifier_max_text_length=50))
        assert detector.available_categories() == ["Lamps"]
        assert detector.max_text_length == 50
