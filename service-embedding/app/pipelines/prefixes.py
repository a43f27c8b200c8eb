"""Role prefixes prepended to text before encoding."""

from dataclasses import dataclass
from typing import List, Sequence

from libs.common.config import EmbeddingConfig

QUERY_PREFIX = "task: search result | query: "
DOCUMENT_PREFIX = "title: none | text: "


@dataclass(frozen=True)
class RolePrefixes:
    """Query/document prefixes from the model's training convention."""

    query: str = QUERY_PREFIX
    document: str = DOCUMENT_PREFIX

    @classmethod
    def from_config(cls, config: EmbeddingConfig) -> "RolePrefixes":
        return cls(query=config.ml_query_prefix, document=config.ml_document_prefix)

    def for_query(self, text: str) -> str:
        return self.query + text

    def for_documents(self, texts: Sequence[str]) -> List[str]:
        return [self.document + text for text in texts]
