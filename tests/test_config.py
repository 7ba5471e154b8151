"""
Tests for settings loading and preprocessing options.
"""

import json

import pytest

from captcha_solver.config import ModelsSettings, ProcessingSettings, Settings, load_settings
from captcha_solver.options import PreprocessOptions


class TestLoadSettings:

    def test_defaults(self):
        settings = load_settings(environ={})

        assert settings == Settings()
        assert settings.models.path == "/app/models"
        assert settings.processing.batch_size == 10
        assert settings.processing.max_image_bytes == 10 * 1024 * 1024

    def test_json_file(self, tmp_path):
        config_file = tmp_path / "settings.json"
        config_file.write_text(json.dumps({
            "models": {"path": "/data/models", "cnn_enabled": False},
            "processing": {"batch_size": 4},
        }))

        settings = load_settings(config_file, environ={})
        assert settings.models == ModelsSettings(path="/data/models", cnn_enabled=False)
        assert settings.processing == ProcessingSettings(batch_size=4)

    def test_environment_overrides_file(self, tmp_path):
        config_file = tmp_path / "settings.json"
        config_file.write_text(json.dumps({"processing": {"batch_size": 4}}))

        environ = {
            "MODELS_PATH": "/env/models",
            "CAPTCHA_PROCESSING__BATCH_SIZE": "7",
            "CAPTCHA_MODELS__OCR_ENABLED": "no",
            "UNRELATED": "1",
        }
        settings = load_settings(config_file, environ=environ)

        assert settings.models.path == "/env/models"
        assert settings.models.ocr_enabled is False
        assert settings.processing.batch_size == 7

    def test_default_model(self):
        settings = load_settings(environ={"CAPTCHA_MODELS__DEFAULT_MODEL": "ocr"})
        assert settings.models.default_model == "ocr"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "missing.json", environ={})

    def test_unknown_key(self, tmp_path):
        config_file = tmp_path / "settings.json"
        config_file.write_text(json.dumps({"models": {"gpu": True}}))

        with pytest.raises(ValueError, match="Unknown models settings"):
            load_settings(config_file, environ={})

    def test_unknown_section(self, tmp_path):
        config_file = tmp_path / "settings.json"
        config_file.write_text(json.dumps({"server": {}}))

        with pytest.raises(ValueError, match="Unknown settings sections"):
            load_settings(config_file, environ={})

    @pytest.mark.parametrize("environ", [
        {"CAPTCHA_MODELS__CNN_ENABLED": "maybe"},
        {"CAPTCHA_PROCESSING__BATCH_SIZE": "ten"},
        {"CAPTCHA_PROCESSING__BATCH_SIZE": "0"},
    ])
    def test_invalid_values(self, environ):
        with pytest.raises(ValueError):
            load_settings(environ=environ)

    def test_to_dict(self):
        data = Settings().to_dict()
        assert data["models"]["cnn_enabled"] is True
        assert data["processing"]["timeout_seconds"] == 30


class TestPreprocessOptions:

    def test_merge_fills_only_unset_fields(self):
        defaults = PreprocessOptions(grayscale=True, threshold=128, denoise=False)
        caller = PreprocessOptions(denoise=True)

        merged = caller.merged_with(defaults)
        assert merged == PreprocessOptions(grayscale=True, threshold=128, denoise=True)

    def test_merge_keeps_explicit_false(self):
        merged = PreprocessOptions(grayscale=False).merged_with(PreprocessOptions(grayscale=True))
        assert merged.grayscale is False

    def test_resize_needs_both_dimensions(self):
        assert PreprocessOptions(resize_width=10).resize is None
        assert PreprocessOptions(resize_width=10, resize_height=5).resize == (10, 5)

    @pytest.mark.parametrize("kwargs", [
        {"threshold": 256},
        {"threshold": -1},
        {"resize_width": 0},
        {"resize_height": -3},
    ])
    def test_validation(self, kwargs):
        with pytest.raises(ValueError):
            PreprocessOptions(**kwargs)

    def test_from_dict(self):
        options = PreprocessOptions.from_dict({"threshold": 90, "denoise": True})
        assert options.threshold == 90
        assert options.to_dict()["denoise"] is True
        assert PreprocessOptions.from_dict(None) == PreprocessOptions()

    def test_from_dict_unknown_key(self):
        with pytest.raises(ValueError, match="Unknown preprocess options"):
            PreprocessOptions.from_dict({"sharpen": True})
