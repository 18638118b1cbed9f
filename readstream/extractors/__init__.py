"""Building blocks of the extraction pipeline: tree builder, scorer and serializers."""

from readstream.extractors.models import ElementRecord, ElementStore, HtmlTag
from readstream.extractors.scoring import ScoringResult, score_document
from readstream.extractors.tree_builder import TreeBuilder

__all__ = ["ElementRecord", "ElementStore", "HtmlTag", "ScoringResult", "TreeBuilder", "score_document"]
