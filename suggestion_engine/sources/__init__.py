"""
Candidate-generation strategies.

Responsibilities:
- Product strategies: collaborative filtering, content similarity, stock and demand signals.
- Text strategies: exact, prefix, fuzzy, related-term and popularity matching.
- Spelling correction and TF-IDF semantic matching over the catalog.
"""
