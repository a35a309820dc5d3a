from pathlib import Path

from receipt_scan_pipeline.core.config import (DEFAULT_FALLBACK_LANGUAGES, DEFAULT_MIN_TEXT_LENGTH,
                                               DEFAULT_PRIMARY_LANGUAGES, DEFAULT_RENDER_SCALE,
                                               PipelineConfig)


def test_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config = PipelineConfig.from_env({})

    assert config.tessdata_dir is None
    assert config.primary_languages == DEFAULT_PRIMARY_LANGUAGES
    assert config.fallback_languages == DEFAULT_FALLBACK_LANGUAGES
    assert config.min_text_length == DEFAULT_MIN_TEXT_LENGTH
    assert config.render_scale == DEFAULT_RENDER_SCALE
    assert config.db_path == Path("./receipts.sqlite")
    assert config.rules_path == Path("./category_rules.json")


def test_from_env():
    config = PipelineConfig.from_env({
        "RECEIPT_SCAN_TESSDATA": "/opt/tessdata",
        "RECEIPT_SCAN_PRIMARY_LANG": "eng",
        "RECEIPT_SCAN_FALLBACK_LANG": "rus+kaz",
        "RECEIPT_SCAN_MIN_TEXT_LENGTH": "80",
        "RECEIPT_SCAN_RENDER_SCALE": "3",
        "RECEIPT_SCAN_TEMP_DIR": "/tmp/receipts",
        "RECEIPT_SCAN_DB": "/data/tx.sqlite",
        "RECEIPT_SCAN_RULES": "/data/rules.json",
    })

    assert config.tessdata_dir == Path("/opt/tessdata")
    assert config.primary_languages == "eng"
    assert config.fallback_languages == "rus+kaz"
    assert config.min_text_length == 80
    assert config.render_scale == 3.0
    assert config.temp_dir == Path("/tmp/receipts")
    assert config.db_path == Path("/data/tx.sqlite")
    assert config.rules_path == Path("/data/rules.json")


def test_tessdata_prefix_fallback():
    assert PipelineConfig.from_env({"TESSDATA_PREFIX": "/usr/share/tessdata"}).tessdata_dir == \
        Path("/usr/share/tessdata")


def test_local_tessdata_directory_is_the_default(tmp_path, monkeypatch):
    (tmp_path / "tessdata").mkdir()
    monkeypatch.chdir(tmp_path)

    assert PipelineConfig.from_env({}).tessdata_dir == Path("tessdata")
    assert PipelineConfig.from_env({"RECEIPT_SCAN_TESSDATA": "/opt/tessdata"}).tessdata_dir == \
        Path("/opt/tessdata")


def test_invalid_numbers_use_defaults():
    config = PipelineConfig.from_env({
        "RECEIPT_SCAN_MIN_TEXT_LENGTH": "many",
        "RECEIPT_SCAN_RENDER_SCALE": "-1",
    })

    assert config.min_text_length == DEFAULT_MIN_TEXT_LENGTH
    assert config.render_scale == DEFAULT_RENDER_SCALE


def test_with_overrides_ignores_none():
    config = PipelineConfig().with_overrides(db_path=Path("x.sqlite"), rules_path=None)

    assert config.db_path == Path("x.sqlite")
    assert config.rules_path == Path("./category_rules.json")
