import json
import pytest
from unittest.mock import Mock

from focus_drift.models.activity import ActivitySample
from focus_drift.services.ai_classifier import GeminiClassifier, build_context, reclassify_intervals
from focus_drift.services.errors import AIClassifierError

def _response(text):
    response = Mock()
    response.text = text
    return response

@pytest.fixture
def mock_model():
    return Mock()

@pytest.fixture
def classifier(mock_model):
    return GeminiClassifier(model=mock_model)

@pytest.mark.asyncio
async def test_successful_classification(classifier, mock_model):
    mock_model.generate_content.return_value = _response(json.dumps({
        "tag": "Development",
        "confidence": 0.9,
        "reasoning": "Editing Python code",
    }))

    result = await classifier.classify("Visual Studio Code", window_title="main.py")

    assert result.tag == "Development"
    assert result.confidence == 0.9
    assert result.reasoning == "Editing Python code"
    prompt = mock_model.generate_content.call_args[0][0]
    assert "Window Title: main.py" in prompt

@pytest.mark.asyncio
async def test_json_wrapped_in_prose(classifier, mock_model):
    mock_model.generate_content.return_value = _response(
        'Sure! ```json\n{"tag": "Meeting", "confidence": 0.7}\n```'
    )
    result = await classifier.classify("zoom.us")
    assert result.tag == "Meeting"

@pytest.mark.asyncio
async def test_tag_outside_allowed_set(classifier, mock_model):
    mock_model.generate_content.return_value = _response('{"tag": "Gaming", "confidence": 0.9}')
    assert await classifier.classify("Steam") is None

@pytest.mark.asyncio
async def test_confidence_is_clamped(classifier, mock_model):
    mock_model.generate_content.return_value = _response('{"tag": "Review", "confidence": 1.7}')
    result = await classifier.classify("Linear")
    assert result.confidence == 1.0

@pytest.mark.asyncio
async def test_missing_confidence_defaults(classifier, mock_model):
    mock_model.generate_content.return_value = _response('{"tag": "Review", "confidence": "high"}')
    result = await classifier.classify("Linear")
    assert result.confidence == 0.5

@pytest.mark.asyncio
async def test_malformed_json_response(classifier, mock_model):
    mock_model.generate_content.return_value = _response("I cannot classify this")
    assert await classifier.classify("Finder") is None

    mock_model.generate_content.return_value = _response('{"tag": "Review",')
    assert await classifier.classify("Finder") is None

@pytest.mark.asyncio
async def test_api_error_raises(classifier, mock_model):
    mock_model.generate_content.side_effect = Exception("quota exceeded")
    with pytest.raises(AIClassifierError):
        await classifier.classify("Finder")

@pytest.mark.asyncio
async def test_batch_skips_failures(classifier, mock_model):
    mock_model.generate_content.side_effect = [
        _response('{"tag": "Development", "confidence": 0.8}'),
        Exception("timeout"),
        _response('{"tag": "Communication", "confidence": 0.6}'),
    ]
    samples = [ActivitySample(app=app, observed_at=0) for app in ("Code", "Safari", "Slack")]
    progress = []

    results = await classifier.batch_classify(
        samples,
        on_progress=lambda current, total: progress.append((current, total)),
        delay_seconds=0,
    )

    assert sorted(results) == [0, 2]
    assert results[2].tag == "Communication"
    assert progress == [(1, 3), (2, 3), (3, 3)]

@pytest.mark.asyncio
async def test_reclassify_intervals_sets_final_tag(db, classifier, mock_model, interval_factory):
    interval = interval_factory(0, 60, "Development", app="Google Chrome", url="https://youtube.com/watch?v=1")
    db.create_interval(interval)
    mock_model.generate_content.return_value = _response(
        '{"tag": "Break & Entertainment", "confidence": 0.95}'
    )

    updated = await reclassify_intervals(db, classifier, delay_seconds=0)

    assert len(updated) == 1
    stored = db.get_interval(interval.id)
    assert stored.tag_ai == stored.tag_final == "Break & Entertainment"
    assert stored.confidence_ai == 0.95
    assert stored.tag_rule == "Development"
    assert db.get_unclassified_intervals() == []

@pytest.mark.asyncio
async def test_reclassify_nothing_pending(db, classifier, mock_model):
    assert await reclassify_intervals(db, classifier, delay_seconds=0) == []
    mock_model.generate_content.assert_not_called()

def test_build_context_skips_missing_fields():
    assert build_context("Finder") == "Application: Finder"
    assert build_context("Safari", url="https://x.com") == "Application: Safari\nURL: https://x.com"
