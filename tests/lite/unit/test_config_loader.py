"""Tests for calendarcard_lite.config_loader."""

import json

import pytest
from pydantic import ValidationError

from calendarcard_lite.config_loader import CONFIG_PATH_ENV, CardConfig, EntityDescriptor, load_config
from calendarcard_lite.exceptions import ConfigValidationError

pytestmark = pytest.mark.unit


class TestEntityDescriptor:
    """Tests for entity descriptor normalization."""

    def test_bare_id_is_id_kind(self):
        descriptor = EntityDescriptor.coerce("calendar.work")

        assert descriptor.entity == "calendar.work"
        assert descriptor.kind == "id"
        assert descriptor.display_name == "calendar.work"

    def test_mapping_with_name_is_named_kind(self):
        descriptor = EntityDescriptor.coerce({"entity": "calendar.home", "name": "Home"})

        assert descriptor.entity == "calendar.home"
        assert descriptor.kind == "named"
        assert descriptor.display_name == "Home"

    def test_mapping_without_name_is_id_kind(self):
        assert EntityDescriptor.coerce({"entity": "calendar.home"}).kind == "id"

    def test_descriptor_passes_through(self):
        descriptor = EntityDescriptor(entity="calendar.work")
        assert EntityDescriptor.coerce(descriptor) is descriptor

    @pytest.mark.parametrize("value", ["", "   ", {"name": "No id"}, {"entity": ""}, 42, None])
    def test_invalid_descriptors_raise(self, value):
        with pytest.raises(ValueError):
            EntityDescriptor.coerce(value)

    def test_descriptors_are_hashable_and_comparable(self):
        a = EntityDescriptor.coerce("calendar.work")
        b = EntityDescriptor.coerce({"entity": "calendar.work"})
        assert a == b
        assert len({a, b}) == 1


class TestCardConfig:
    """Tests for CardConfig validation and defaults."""

    def test_defaults(self):
        config = CardConfig.from_dict({"entities": ["calendar.work"]})

        assert config.number_of_days == 7
        assert config.events_limit == 99
        assert config.hide_past_events is False
        assert config.start_from_today is False
        assert config.show_multi_day is False
        assert config.ignore_events_expression == ""
        assert config.ignore_events_by_location_expression == ""
        assert config.timezone is None

    def test_camel_case_keys(self):
        config = CardConfig.from_dict(
            {
                "entities": ["calendar.work"],
                "numberOfDays": 3,
                "eventsLimit": 2,
                "hidePastEvents": True,
                "startFromToday": True,
                "showMultiDay": True,
                "ignoreEventsExpression": "standup",
                "ignoreEventsByLocationExpression": "remote",
            }
        )

        assert config.number_of_days == 3
        assert config.events_limit == 2
        assert config.hide_past_events is True
        assert config.start_from_today is True
        assert config.show_multi_day is True
        assert config.ignore_events_expression == "standup"
        assert config.ignore_events_by_location_expression == "remote"

    def test_snake_case_keys(self):
        config = CardConfig.from_dict({"entities": ["calendar.work"], "number_of_days": 14})
        assert config.number_of_days == 14

    def test_mixed_entities_are_normalized_in_order(self):
        config = CardConfig.from_dict(
            {"entities": ["calendar.work", {"entity": "calendar.home", "name": "Home"}]}
        )

        assert [e.entity for e in config.entities] == ["calendar.work", "calendar.home"]
        assert [e.kind for e in config.entities] == ["id", "named"]

    def test_single_entity_is_wrapped_in_list(self):
        config = CardConfig.from_dict({"entities": "calendar.work"})
        assert [e.entity for e in config.entities] == ["calendar.work"]

    def test_missing_entities_raises(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            CardConfig.from_dict({"numberOfDays": 3})
        assert exc_info.value.field_name == "entities"

    @pytest.mark.parametrize(
        ("key", "value"),
        [("numberOfDays", 0), ("numberOfDays", -2), ("eventsLimit", -1)],
    )
    def test_out_of_range_numbers_raise(self, key, value):
        with pytest.raises(ConfigValidationError) as exc_info:
            CardConfig.from_dict({"entities": ["calendar.work"], key: value})
        assert exc_info.value.field_name == key

    def test_zero_events_limit_is_allowed(self):
        assert CardConfig.from_dict({"entities": ["calendar.work"], "eventsLimit": 0}).events_limit == 0

    @pytest.mark.parametrize(
        "key", ["ignoreEventsExpression", "ignoreEventsByLocationExpression"]
    )
    def test_invalid_expression_fails_fast(self, key):
        with pytest.raises(ConfigValidationError) as exc_info:
            CardConfig.from_dict({"entities": ["calendar.work"], key: "standup("})

        assert exc_info.value.field_name == key
        assert "regular expression" in str(exc_info.value)

    def test_null_expression_disables_filter(self):
        config = CardConfig.from_dict(
            {"entities": ["calendar.work"], "ignoreEventsExpression": None}
        )
        assert config.ignore_events_expression == ""

    def test_invalid_timezone_raises(self):
        with pytest.raises(ConfigValidationError):
            CardConfig.from_dict({"entities": ["calendar.work"], "timezone": "Nowhere/Land"})

    def test_presentation_keys_are_carried_through(self):
        config = CardConfig.from_dict(
            {
                "entities": ["calendar.work"],
                "title": "Agenda",
                "timeFormat": "HH:mm",
                "showLocation": True,
            }
        )

        assert config.presentation == {"title": "Agenda", "timeFormat": "HH:mm", "showLocation": True}

    def test_config_is_immutable(self):
        config = CardConfig.from_dict({"entities": ["calendar.work"]})
        with pytest.raises(ValidationError):
            config.number_of_days = 3

    def test_non_mapping_raises(self):
        with pytest.raises(ConfigValidationError):
            CardConfig.from_dict(["calendar.work"])


class TestLoadConfig:
    """Tests for load_config."""

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "card.yaml"
        path.write_text(
            "entities:\n"
            "  - calendar.work\n"
            "  - entity: calendar.home\n"
            "    name: Home\n"
            "numberOfDays: 3\n"
            "showMultiDay: true\n"
        )

        config = load_config(str(path))

        assert config.number_of_days == 3
        assert config.show_multi_day is True
        assert config.entities[1].display_name == "Home"

    def test_load_json(self, tmp_path):
        path = tmp_path / "card.json"
        path.write_text(json.dumps({"entities": ["calendar.work"], "eventsLimit": 5}))

        assert load_config(str(path)).events_limit == 5

    def test_path_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "env.yaml"
        path.write_text("entities: [calendar.env]\n")
        monkeypatch.setenv(CONFIG_PATH_ENV, str(path))

        assert load_config().entities[0].entity == "calendar.env"

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigValidationError, match="not found"):
            load_config(str(tmp_path / "missing.yaml"))

    def test_non_mapping_document_raises(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- calendar.work\n")

        with pytest.raises(ConfigValidationError, match="mapping"):
            load_config(str(path))

    def test_unparseable_yaml_raises(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("entities: [calendar.work\n")

        with pytest.raises(ConfigValidationError, match="Unable to parse"):
            load_config(str(path))

    def test_empty_file_reports_missing_entities(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        with pytest.raises(ConfigValidationError) as exc_info:
            load_config(str(path))
        assert exc_info.value.field_name == "entities"
