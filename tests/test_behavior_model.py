from assistant_engine.behavior_model import FeedbackModel, feature_row


def test_feature_row_fills_missing_timeline():
    assert feature_row({"keyword": 0.2, "timeline": None, "contextual": 0.4}) == [0.2, 0.5, 0.4]


def test_untrained_model_predicts_none():
    model = FeedbackModel()
    model.record({"keyword": 0.9, "timeline": 1.0, "contextual": 0.7}, accepted=True)
    assert model.predict({"keyword": 0.9, "timeline": 1.0, "contextual": 0.7}) is None
    assert model.acceptance_rate() == 1.0


def test_single_class_feedback_is_not_trainable():
    model = FeedbackModel()
    for _ in range(8):
        model.record({"keyword": 0.1, "timeline": 0.2, "contextual": 0.0}, accepted=False)
    assert not model.is_trainable()


def test_trained_model_separates_accepted_links():
    model = FeedbackModel()
    for index in range(4):
        model.record({"keyword": 0.5 + index * 0.1, "timeline": 1.0, "contextual": 0.7}, accepted=True)
        model.record({"keyword": 0.05 * index, "timeline": 0.2, "contextual": 0.0}, accepted=False)

    assert model.sample_count == 8
    assert model.acceptance_rate() == 0.5
    high = model.predict({"keyword": 0.7, "timeline": 1.0, "contextual": 0.7})
    low = model.predict({"keyword": 0.0, "timeline": 0.2, "contextual": 0.0})
    assert 0.0 <= low < 0.5 < high <= 1.0
