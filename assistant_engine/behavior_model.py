"""Feedback-trained model for the behavioral correlation signal."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import numpy as np
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

FEATURE_NAMES = ("keyword", "timeline", "contextual")
MIN_SAMPLES_PER_CLASS = 3
MIN_SAMPLES = 6
_MISSING_VALUE = 0.5


def feature_row(components: dict[str, Optional[float]]) -> list[float]:
    """Vectorize algorithm scores; algorithms that could not apply become 0.5."""

    row = []
    for name in FEATURE_NAMES:
        value = components.get(name)
        row.append(_MISSING_VALUE if value is None else float(value))
    return row


def _make_pipeline(seed: int) -> Pipeline:
    return Pipeline(
        [
            ("scaler", StandardScaler()),
            ("clf", LogisticRegression(max_iter=1000, random_state=seed)),
        ]
    )


@dataclass
class FeedbackModel:
    """Accept/reject history for suggested event-task links of one user."""

    seed: int = 42
    rows: list[list[float]] = field(default_factory=list)
    labels: list[int] = field(default_factory=list)
    _pipeline: Optional[Pipeline] = field(default=None, repr=False)

    def record(self, components: dict[str, Optional[float]], accepted: bool) -> None:
        self.rows.append(feature_row(components))
        self.labels.append(1 if accepted else 0)
        self._pipeline = None

    @property
    def sample_count(self) -> int:
        return len(self.labels)

    def is_trainable(self) -> bool:
        positives = sum(self.labels)
        negatives = len(self.labels) - positives
        return (
            len(self.labels) >= MIN_SAMPLES
            and positives >= MIN_SAMPLES_PER_CLASS
            and negatives >= MIN_SAMPLES_PER_CLASS
        )

    def acceptance_rate(self) -> Optional[float]:
        if not self.labels:
            return None
        return float(np.mean(self.labels))

    def _fit(self) -> Pipeline:
        if self._pipeline is None:
            X = np.asarray(self.rows, dtype=float)
            y = np.asarray(self.labels, dtype=int)
            pipeline = _make_pipeline(self.seed)
            pipeline.fit(X, y)
            self._pipeline = pipeline
        return self._pipeline

    def predict(self, components: dict[str, Optional[float]]) -> Optional[float]:
        """Probability that the user accepts this link, or None while untrained."""

        if not self.is_trainable():
            return None
        pipeline = self._fit()
        X = np.asarray([feature_row(components)], dtype=float)
        probability = float(pipeline.predict_proba(X)[0][1])
        return max(0.0, min(1.0, probability))
