"""
Text suggestion strategies.

All sources read one shared ``SuggestionCorpus`` built from the catalog's
logged search terms and active product names. A candidate's identity is its
lower-cased text, so the same phrase surfaced by several strategies fuses
into one suggestion.
"""
from __future__ import annotations

import re
from collections import Counter
from typing import Any

import pandas as pd

from ..catalog.data_store import Catalog
from ..ranking.aggregator import CandidateSource
from ..ranking.errors import SourceUnavailable
from ..ranking.models import Candidate, RankingContext
from .text import levenshtein, related_terms, similarity, soundex
from .text_index import TextIndex

_WORD_RE = re.compile(r"[a-z0-9][a-z0-9\-]+")


class SuggestionCorpus:
    """Searchable phrases with their context, popularity and category.

    Logged search terms keep their own context; product names are offered
    in the ``product`` context. Built once and never mutated.
    """

    COLUMNS = ["text", "text_lower", "type", "context", "frequency", "category", "product_id"]

    def __init__(self, catalog: Catalog) -> None:
        terms = catalog.search_terms
        term_rows = pd.DataFrame({
            "text": terms["term"],
            "text_lower": terms["term_lower"],
            "type": "search_term",
            "context": terms["context"],
            "frequency": terms["search_count"],
            "category": terms["category"],
            "product_id": None,
        })

        products = catalog.active_products()
        product_rows = pd.DataFrame({
            "text": products["name"],
            "text_lower": products["name_lower"],
            "type": "product",
            "context": "product",
            "frequency": 1,
            "category": products["category"],
            "product_id": products["id"],
        })

        entries = pd.concat([term_rows, product_rows], ignore_index=True)
        entries = entries[entries["text_lower"].str.len() > 0]
        self.entries = entries[self.COLUMNS].reset_index(drop=True)
        self.max_frequency = max(int(self.entries["frequency"].max()), 1) if not self.entries.empty else 1

        # Word vocabulary for spelling correction
        counts: Counter[str] = Counter()
        for text, freq in zip(self.entries["text_lower"], self.entries["frequency"]):
            for word in _WORD_RE.findall(text):
                if len(word) >= 3:
                    counts[word] += int(freq)
        self.vocabulary: dict[str, int] = dict(counts)
        self.phrases: set[str] = set(self.entries["text_lower"])

        self.product_index = TextIndex(
            products["id"].tolist(),
            (products["name"] + " " + products["description"]).tolist(),
        )
        self.product_names = dict(zip(products["id"], products["name"]))
        self.product_categories = dict(zip(products["id"], products["category"]))

    def scoped(self, context: RankingContext) -> pd.DataFrame:
        """Entries visible in the request context; ``general`` sees all."""
        if context.context == "general":
            return self.entries
        return self.entries[self.entries["context"] == context.context]

    def is_known(self, query: str) -> bool:
        """True when the query is a known phrase or made only of known words."""
        lower = query.lower().strip()
        if lower in self.phrases:
            return True
        words = _WORD_RE.findall(lower)
        return bool(words) and all(w in self.vocabulary for w in words if len(w) >= 3)


class TextSource(CandidateSource):
    def __init__(self, corpus: SuggestionCorpus) -> None:
        self.corpus = corpus

    def suggestion(
        self, row: Any, score: float, reasoning: str, **extra: Any,
    ) -> Candidate:
        attributes = {
            "text": row.text,
            "type": row.type,
            "context": row.context,
            "frequency": int(row.frequency),
            "category": row.category if isinstance(row.category, str) else None,
        }
        if isinstance(row.product_id, str):
            attributes["product_id"] = row.product_id
        attributes.update(extra)
        return self.candidate(row.text_lower, score, attributes, [reasoning])

    @staticmethod
    def by_popularity(frame: pd.DataFrame) -> pd.DataFrame:
        ordered = frame.assign(_length=frame["text_lower"].str.len())
        ordered = ordered.sort_values(["frequency", "_length"], ascending=[False, True], kind="stable")
        return ordered.drop(columns="_length")


# ── Search suggestions / autocomplete ───────────────────────────────────


class ExactMatchSource(TextSource):
    name = "exact_match"

    def find(self, context: RankingContext) -> list[Candidate]:
        query = context.primary_key.lower()
        entries = self.corpus.scoped(context)
        hits = self.by_popularity(entries[entries["text_lower"] == query]).head(5)
        return [self.suggestion(row, 1.0, "Exact match") for row in hits.itertuples(index=False)]


class PrefixMatchSource(TextSource):
    name = "prefix_match"

    def __init__(self, corpus: SuggestionCorpus, limit: int = 8) -> None:
        super().__init__(corpus)
        self.limit = limit

    def find(self, context: RankingContext) -> list[Candidate]:
        query = context.primary_key.lower()
        entries = self.corpus.scoped(context)
        hits = self.by_popularity(entries[entries["text_lower"].str.startswith(query)]).head(self.limit)
        return [self.suggestion(row, 1.0, f"Starts with '{query}'") for row in hits.itertuples(index=False)]


class FuzzyMatchSource(TextSource):
    """Typo-tolerant matches: sound-alike or near-substring phrases.

    Shortlisted phrases must still reach ``min_similarity``.
    """

    name = "fuzzy_match"

    def __init__(self, corpus: SuggestionCorpus, min_similarity: float = 0.6, limit: int = 6) -> None:
        super().__init__(corpus)
        self.min_similarity = min_similarity
        self.limit = limit

    def find(self, context: RankingContext) -> list[Candidate]:
        query = context.primary_key.lower()
        code = soundex(query)
        head, tail = query[:-1], query[1:]

        scored = []
        for row in self.corpus.scoped(context).itertuples(index=False):
            text = row.text_lower
            if text == query:
                continue
            if not (soundex(text) == code or (head and head in text) or (tail and tail in text)):
                continue
            sim = similarity(query, text)
            if sim >= self.min_similarity:
                scored.append((sim, int(row.frequency), row))

        scored.sort(key=lambda item: (-item[0], -item[1]))
        return [
            self.suggestion(row, sim, f"Similar spelling ({sim:.0%})", similarity=round(sim, 3))
            for sim, _, row in scored[: self.limit]
        ]


class SemanticMatchSource(TextSource):
    """Phrases containing terms related to the query."""

    name = "semantic_match"

    def __init__(self, corpus: SuggestionCorpus, per_term: int = 3) -> None:
        super().__init__(corpus)
        self.per_term = per_term

    def find(self, context: RankingContext) -> list[Candidate]:
        entries = self.corpus.scoped(context)
        out: list[Candidate] = []
        for related in related_terms(context.primary_key):
            hits = entries[entries["text_lower"].str.contains(related["term"], regex=False)]
            for row in self.by_popularity(hits).head(self.per_term).itertuples(index=False):
                out.append(self.suggestion(
                    row,
                    related["relevance"],
                    f"Related to '{related['via']}'",
                    relevance=related["relevance"],
                ))
        return out


class PopularSearchSource(TextSource):
    """Frequently searched phrases that contain (or complete) the query.

    Scored by popularity relative to the most searched phrase.
    """

    def __init__(
        self,
        corpus: SuggestionCorpus,
        name: str = "popular_searches",
        completion: bool = False,
        limit: int = 5,
    ) -> None:
        super().__init__(corpus)
        self.name = name
        self.completion = completion
        self.limit = limit

    def find(self, context: RankingContext) -> list[Candidate]:
        query = context.primary_key.lower()
        entries = self.corpus.scoped(context)
        entries = entries[entries["type"] == "search_term"]
        if self.completion:
            hits = entries[entries["text_lower"].str.startswith(query) & (entries["text_lower"] != query)]
        else:
            hits = entries[entries["text_lower"].str.contains(query, regex=False)]
        hits = self.by_popularity(hits).head(self.limit)

        out = []
        for row in hits.itertuples(index=False):
            popularity = int(row.frequency) / self.corpus.max_frequency
            out.append(self.suggestion(
                row, popularity, f"Searched {int(row.frequency)} times", popularity=round(popularity, 3),
            ))
        return out


class CategoryMatchTextSource(TextSource):
    name = "category_match"

    def __init__(self, corpus: SuggestionCorpus, limit: int = 5) -> None:
        super().__init__(corpus)
        self.limit = limit

    def find(self, context: RankingContext) -> list[Candidate]:
        query = context.primary_key.lower()
        entries = self.corpus.scoped(context)
        category = entries["category"].fillna("").astype(str).str.lower()
        hits = self.by_popularity(entries[category.str.contains(query, regex=False) & (category != "")])
        return [
            self.suggestion(row, 1.0, f"In category {row.category}")
            for row in hits.head(self.limit).itertuples(index=False)
        ]


# ── Spell check ─────────────────────────────────────────────────────────


class SpellingSource(CandidateSource):
    """Corrections drawn from the corpus vocabulary.

    Single-word queries are matched against known words; multi-word queries
    against known phrases, plus a word-by-word corrected phrase.
    """

    def __init__(self, corpus: SuggestionCorpus) -> None:
        self.corpus = corpus

    def vocabulary_for(self, query: str) -> dict[str, int]:
        if " " in query:
            entries = self.corpus.entries
            return dict(zip(entries["text_lower"], entries["frequency"].astype(int)))
        return self.corpus.vocabulary

    def within_distance(self, context: RankingContext) -> list[tuple[str, int, int]]:
        """``(term, distance, frequency)`` for terms within ``max_distance`` edits."""
        query = context.primary_key.lower()
        hits = []
        for term, freq in self.vocabulary_for(query).items():
            if term == query or abs(len(term) - len(query)) > context.max_distance:
                continue
            distance = levenshtein(query, term)
            if distance <= context.max_distance:
                hits.append((term, distance, int(freq)))
        hits.sort(key=lambda h: (h[1], -h[2], h[0]))
        return hits

    def correction(self, term: str, score: float, reasoning: str, **extra: Any) -> Candidate:
        return self.candidate(
            term,
            score,
            {"text": term, "type": "correction", "frequency": self.corpus.vocabulary.get(term, 0), **extra},
            [reasoning],
        )


class LevenshteinSource(SpellingSource):
    name = "levenshtein_distance"

    def find(self, context: RankingContext) -> list[Candidate]:
        scale = context.max_distance + 1
        out = [
            self.correction(term, 1 - distance / scale, f"{distance} edit(s) away", distance=distance)
            for term, distance, _ in self.within_distance(context)
        ]

        words = context.primary_key.lower().split()
        if len(words) > 1:
            corrected, worst = [], 0
            for word in words:
                if word in self.corpus.vocabulary or len(word) < 3:
                    corrected.append(word)
                    continue
                best = min(
                    (
                        (levenshtein(word, known), -freq, known)
                        for known, freq in self.corpus.vocabulary.items()
                        if abs(len(known) - len(word)) <= context.max_distance
                    ),
                    default=None,
                )
                if best is None or best[0] > context.max_distance:
                    corrected.append(word)
                    continue
                corrected.append(best[2])
                worst = max(worst, best[0])
            phrase = " ".join(corrected)
            if phrase != " ".join(words):
                out.append(self.correction(
                    phrase, 1 - worst / scale, "Corrected word by word", distance=worst,
                ))
        return out


class PhoneticSource(SpellingSource):
    name = "phonetic_matching"

    def find(self, context: RankingContext) -> list[Candidate]:
        query = context.primary_key.lower()
        codes = [soundex(w) for w in query.split()]
        out = []
        for term, freq in self.vocabulary_for(query).items():
            if term == query:
                continue
            if [soundex(w) for w in term.split()] != codes:
                continue
            # Sound-alikes still need to be plausibly close in spelling
            if levenshtein(query, term) > context.max_distance + 1:
                continue
            out.append(self.correction(term, similarity(query, term), "Sounds like the query"))
        return out


class FrequencyBasedSource(SpellingSource):
    name = "frequency_based"

    def find(self, context: RankingContext) -> list[Candidate]:
        hits = self.within_distance(context)
        if not hits:
            return []
        top = max(freq for _, _, freq in hits) or 1
        return [
            self.correction(term, freq / top, f"Common term ({freq} uses)")
            for term, _, freq in hits
        ]


# ── Semantic search ─────────────────────────────────────────────────────


class SemanticSimilaritySource(CandidateSource):
    """Products whose name and description are closest to the query (TF-IDF)."""

    name = "semantic_similarity"

    def __init__(self, corpus: SuggestionCorpus, limit: int = 15) -> None:
        self.corpus = corpus
        self.limit = limit

    def product_candidate(self, product_id: str, score: float, reasoning: str) -> Candidate:
        name = self.corpus.product_names[product_id]
        return self.candidate(
            name.lower(),
            score,
            {
                "text": name,
                "type": "product",
                "context": "product",
                "product_id": product_id,
                "category": self.corpus.product_categories.get(product_id),
            },
            [reasoning],
        )

    def find(self, context: RankingContext) -> list[Candidate]:
        if not self.corpus.product_index.ready:
            raise SourceUnavailable("product text index is empty")
        return [
            self.product_candidate(pid, score, f"Text similarity {score:.2f}")
            for pid, score in self.corpus.product_index.top(context.primary_key, self.limit)
        ]


class ConceptualMatchSource(SemanticSimilaritySource):
    """Domain concepts related to the query and the products named after them."""

    name = "conceptual_match"

    def find(self, context: RankingContext) -> list[Candidate]:
        out: list[Candidate] = []
        for related in related_terms(context.primary_key):
            term = related["term"]
            out.append(self.candidate(
                term,
                related["relevance"],
                {"text": term, "type": "concept", "context": context.context},
                [f"Related to '{related['via']}'"],
            ))
            for pid, name in self.corpus.product_names.items():
                if term in name.lower():
                    out.append(self.product_candidate(pid, related["relevance"], f"Involves {term}"))
        return out
