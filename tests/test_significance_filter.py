import pytest
from unittest.mock import Mock

from src.SignificanceFilter import SignificanceFilter
from src.types import ClassificationResult, DetectedEvent


def make_result(top_class: str, top_score: float) -> ClassificationResult:
    return ClassificationResult(
        top_class=top_class,
        top_score=top_score,
        predictions={top_class: top_score, "Music": top_score / 2},
    )


class TestSignificanceFilter:

    def test_defaults(self):
        significance = SignificanceFilter()

        assert significance.threshold == 0.3
        assert "Silence" in significance.ignored_classes

    @pytest.mark.parametrize("top_class,top_score,expected", [
        ("Dog", 0.8, True),
        ("Dog", 0.3, True),
        ("Dog", 0.29, False),
        ("Silence", 0.95, False),
        ("White noise", 0.9, False),
    ])
    def test_is_significant(self, top_class, top_score, expected):
        assert SignificanceFilter().is_significant(make_result(top_class, top_score)) is expected

    def test_significant_result_forwarded_as_event(self):
        subscriber = Mock()
        significance = SignificanceFilter(subscribers=[subscriber], clock=lambda: 1700000000.0)

        significance.on_classification(make_result("Dog", 0.8))

        subscriber.on_event.assert_called_once()
        event = subscriber.on_event.call_args[0][0]
        assert isinstance(event, DetectedEvent)
        assert event.timestamp == 1700000000.0
        assert event.class_name == "Dog"
        assert event.score == 0.8
        assert event.predictions == {"Dog": 0.8, "Music": 0.4}

    def test_insignificant_result_dropped(self):
        subscriber = Mock()
        significance = SignificanceFilter(subscribers=[subscriber])

        significance.on_classification(make_result("Dog", 0.1))
        significance.on_classification(make_result("Silence", 0.9))

        subscriber.on_event.assert_not_called()

    def test_threshold_and_ignored_classes_from_config(self, config):
        config['events']['threshold'] = 0.6
        config['events']['ignored_classes'] = ["Dog"]
        subscriber = Mock()
        significance = SignificanceFilter(config, subscribers=[subscriber])

        significance.on_classification(make_result("Dog", 0.9))
        significance.on_classification(make_result("Cat", 0.5))
        significance.on_classification(make_result("Silence", 0.7))

        subscriber.on_event.assert_called_once()
        assert subscriber.on_event.call_args[0][0].class_name == "Silence"

    def test_audio_level_ignored(self):
        subscriber = Mock()
        significance = SignificanceFilter(subscribers=[subscriber])

        significance.on_audio_level(0.7)

        subscriber.on_event.assert_not_called()
