from __future__ import annotations

import numpy as np
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity


class TextIndex:
    """TF-IDF index over a fixed list of documents.

    Built once up front; ``scores`` is read-only afterwards, so concurrent
    sources can share one index.
    """

    def __init__(self, ids: list[str], texts: list[str]) -> None:
        self.ids = list(ids)
        self._vectorizer: TfidfVectorizer | None = None
        self._matrix = None
        if any(t.strip() for t in texts):
            self._vectorizer = TfidfVectorizer(lowercase=True, stop_words="english")
            try:
                self._matrix = self._vectorizer.fit_transform(texts)
            except ValueError:
                # Vocabulary made only of stop words
                self._vectorizer = None

    @property
    def ready(self) -> bool:
        return self._vectorizer is not None

    def scores(self, query: str) -> np.ndarray:
        """Cosine similarity of ``query`` against every document, in id order."""
        if self._vectorizer is None or not query.strip():
            return np.zeros(len(self.ids))
        query_vec = self._vectorizer.transform([query])
        return cosine_similarity(query_vec, self._matrix).flatten()

    def top(self, query: str, n: int, exclude: set[str] | None = None) -> list[tuple[str, float]]:
        exclude = exclude or set()
        sims = self.scores(query)
        order = np.argsort(-sims, kind="stable")
        hits: list[tuple[str, float]] = []
        for idx in order:
            if sims[idx] <= 0:
                break
            if self.ids[idx] in exclude:
                continue
            hits.append((self.ids[idx], float(sims[idx])))
            if len(hits) >= n:
                break
        return hits
