"""
Tests for YAML configuration loading.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from tutortimeline.config import AppConfig, EngineDefaults, Participant


class TestEngineDefaults:
    def test_defaults(self):
        defaults = EngineDefaults()

        assert defaults.gap_tolerance == timedelta(minutes=30)
        assert defaults.lead_time == timedelta(minutes=5)
        assert defaults.office_hours_buffer == timedelta(minutes=5)
        assert defaults.office_hours_max_ahead == timedelta(hours=24)

    def test_negative_values_rejected(self):
        with pytest.raises(ValidationError):
            EngineDefaults(gap_tolerance_minutes=-1)

    def test_visible_hours_must_be_ordered(self):
        with pytest.raises(ValidationError):
            EngineDefaults(visible_start_hour=20, visible_end_hour=8)

    def test_visible_day_may_end_at_midnight(self):
        assert EngineDefaults(visible_start_hour=0, visible_end_hour=24).visible_end_hour == 24


class TestAppConfig:
    def test_load_from_yaml(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text(
            "timezone: Europe/Berlin\n"
            "snapshot_file: data/snapshot.json\n"
            "defaults:\n"
            "  gap_tolerance_minutes: 15\n"
            "participants:\n"
            "  - name: Maria\n"
            "    id: tutor-1\n",
            encoding="utf-8",
        )

        config = AppConfig.load_from_yaml(config_path)

        assert config.timezone == "Europe/Berlin"
        assert config.snapshot_file == tmp_path / "data" / "snapshot.json"
        assert config.defaults.gap_tolerance_minutes == 15
        assert config.defaults.lead_time_minutes == 5

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AppConfig.load_from_yaml(tmp_path / "config.yaml")

    def test_invalid_yaml(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("timezone: [unclosed\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid YAML"):
            AppConfig.load_from_yaml(config_path)

    def test_root_must_be_mapping(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("- just\n- a list\n", encoding="utf-8")

        with pytest.raises(ValueError, match="mapping"):
            AppConfig.load_from_yaml(config_path)

    def test_empty_file_gives_defaults(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("", encoding="utf-8")

        config = AppConfig.load_from_yaml(config_path)

        assert config.timezone == "America/New_York"
        assert config.snapshot_file is None

    def test_duplicate_participants_rejected(self):
        with pytest.raises(ValidationError):
            AppConfig(participants=[
                Participant(name="maria", id="tutor-1"),
                Participant(name="Maria", id="tutor-2"),
            ])

    def test_resolve_participant(self):
        config = AppConfig(participants=[Participant(name="maria", id="tutor-1")])

        assert config.resolve_participant("MARIA") == "tutor-1"
        assert config.resolve_participant("tutor-9") == "tutor-9"
