"""API routes for the embedding service."""

import math
import time
from typing import Any, List, Optional, Union

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
import structlog

from ..pipelines.embedding import EmbeddingPipeline
from ..ranking.reranker import Reranker
from ..runtime.metrics import MetricsCollector
from libs.common.auth import require_api_key
from libs.common.config import EmbeddingConfig
from libs.common.errors import InvalidRequestError

logger = structlog.get_logger("embedding_service.api")

router = APIRouter()


class EmbeddingsRequest(BaseModel):
    """OpenAI-compatible embeddings request."""
    input: Union[str, List[str]] = Field(..., description="Text or list of texts to embed")
    model: str = Field(..., description="Model identifier")
    dimensions: Optional[int] = Field(None, description="Output dimensionality (MRL)")
    encoding_format: Optional[str] = Field(None, description="Only 'float' is supported")


class EmbeddingData(BaseModel):
    object: str = "embedding"
    index: int
    embedding: List[float]


class Usage(BaseModel):
    prompt_tokens: int
    total_tokens: int


class EmbeddingsResponse(BaseModel):
    """OpenAI-compatible embeddings response."""
    object: str = "list"
    data: List[EmbeddingData]
    model: str
    usage: Usage


class LegacyEmbedRequest(BaseModel):
    """Request model for the legacy ``/embed`` endpoint."""
    input: Optional[Union[str, List[str]]] = Field(None, description="Text or list of texts")
    dimensions: Optional[int] = Field(None, description="Output dimensionality (MRL)")


class LegacyEmbedResponse(BaseModel):
    embeddings: List[List[float]] = Field(..., description="Generated embeddings")
    count: int = Field(..., description="Number of embeddings generated")


class RerankRequest(BaseModel):
    """Request model for the rerank endpoint.

    ``documents`` is typed loosely so shape problems get the endpoint's own
    error messages.
    """
    query: Optional[str] = Field(None, description="Search query")
    documents: Optional[Any] = Field(None, description="Candidate documents")


class RerankResponse(BaseModel):
    ranking: List[int] = Field(..., description="Document indices, most relevant first")


class ModelDescriptor(BaseModel):
    id: str
    object: str = "model"
    created: int
    owned_by: str


def get_config(request: Request) -> EmbeddingConfig:
    """Get service configuration from application state."""
    return request.app.state.config


def get_pipeline(request: Request) -> EmbeddingPipeline:
    """Get embedding pipeline from application state."""
    return request.app.state.embedding_pipeline


def get_reranker(request: Request) -> Reranker:
    """Get reranker from application state."""
    return request.app.state.reranker


def get_metrics(request: Request) -> MetricsCollector:
    """Get metrics collector from application state."""
    return request.app.state.metrics_collector


def normalize_input(value: Optional[Union[str, List[str]]]) -> List[str]:
    """Turn ``input`` (string or list of strings) into a non-empty list."""
    if value is None or value == "":
        raise InvalidRequestError("Missing required field: input", param="input")
    texts = [value] if isinstance(value, str) else list(value)
    if not texts:
        raise InvalidRequestError("Input array cannot be empty", param="input")
    return texts


def estimate_tokens(texts: List[str]) -> int:
    """Coarse token estimate: roughly four characters per token."""
    return sum(math.ceil(len(text) / 4) for text in texts)


def describe_model(config: EmbeddingConfig) -> ModelDescriptor:
    return ModelDescriptor(
        id=config.ml_embedding_model_id,
        created=config.ml_embedding_model_created,
        owned_by=config.ml_embedding_model_owner,
    )


@router.post(
    "/v1/embeddings",
    response_model=EmbeddingsResponse,
    dependencies=[Depends(require_api_key)],
)
async def create_embeddings(
    request: EmbeddingsRequest,
    config: EmbeddingConfig = Depends(get_config),
    pipeline: EmbeddingPipeline = Depends(get_pipeline),
    metrics_collector: MetricsCollector = Depends(get_metrics),
):
    """Generate embeddings (OpenAI-compatible)."""
    start_time = time.time()

    if request.model not in config.accepted_model_names:
        raise InvalidRequestError(
            f"Model '{request.model}' is not served here; use '{config.ml_embedding_model_id}'",
            param="model",
            code="model_not_found",
        )
    if request.encoding_format is not None and request.encoding_format != "float":
        raise InvalidRequestError(
            "Only encoding_format 'float' is supported",
            param="encoding_format",
            code="unsupported_encoding_format",
        )
    texts = normalize_input(request.input)

    vectors = await pipeline.embed(texts, dimensions=request.dimensions)

    duration = time.time() - start_time
    dimensions = len(vectors[0])
    metrics_collector.record_embedding(
        model_name=config.ml_embedding_model_id,
        dimensions=dimensions,
        count=len(vectors),
        duration=duration,
    )
    logger.info(
        "Embeddings generated",
        model_name=config.ml_embedding_model_id,
        count=len(vectors),
        dimensions=dimensions,
        latency_ms=round(duration * 1000, 2),
    )

    prompt_tokens = estimate_tokens(texts)
    return EmbeddingsResponse(
        data=[
            EmbeddingData(index=index, embedding=vector)
            for index, vector in enumerate(vectors)
        ],
        model=config.ml_embedding_model_id,
        usage=Usage(prompt_tokens=prompt_tokens, total_tokens=prompt_tokens),
    )


@router.post(
    "/embed",
    response_model=LegacyEmbedResponse,
    dependencies=[Depends(require_api_key)],
)
async def embed(
    request: LegacyEmbedRequest,
    config: EmbeddingConfig = Depends(get_config),
    pipeline: EmbeddingPipeline = Depends(get_pipeline),
    metrics_collector: MetricsCollector = Depends(get_metrics),
):
    """Generate embeddings (legacy response shape)."""
    start_time = time.time()
    texts = normalize_input(request.input)

    vectors = await pipeline.embed(texts, dimensions=request.dimensions)

    duration = time.time() - start_time
    metrics_collector.record_embedding(
        model_name=config.ml_embedding_model_id,
        dimensions=len(vectors[0]),
        count=len(vectors),
        duration=duration,
    )
    logger.info(
        "Embeddings generated",
        endpoint="/embed",
        count=len(vectors),
        latency_ms=round(duration * 1000, 2),
    )
    return LegacyEmbedResponse(embeddings=vectors, count=len(vectors))


@router.post(
    "/rerank",
    response_model=RerankResponse,
    dependencies=[Depends(require_api_key)],
)
async def rerank(
    request: RerankRequest,
    config: EmbeddingConfig = Depends(get_config),
    reranker: Reranker = Depends(get_reranker),
    metrics_collector: MetricsCollector = Depends(get_metrics),
):
    """Rank documents by relevance to the query."""
    start_time = time.time()

    if not request.query or request.documents is None:
        raise InvalidRequestError("Missing required fields: query and documents")
    if not isinstance(request.documents, list):
        raise InvalidRequestError("Documents must be an array", param="documents")
    if not request.documents:
        raise InvalidRequestError("Documents array cannot be empty", param="documents")
    if not all(isinstance(document, str) for document in request.documents):
        raise InvalidRequestError("Documents must be strings", param="documents")

    ranking = await reranker.rerank(request.query, request.documents)

    duration = time.time() - start_time
    metrics_collector.record_rerank(
        model_name=config.ml_embedding_model_id,
        documents=len(request.documents),
        duration=duration,
    )
    logger.info(
        "Documents reranked",
        documents=len(request.documents),
        latency_ms=round(duration * 1000, 2),
    )
    return RerankResponse(ranking=ranking)


@router.get("/models", response_model=ModelDescriptor)
@router.get("/v1/models", response_model=ModelDescriptor)
async def list_models(config: EmbeddingConfig = Depends(get_config)):
    """Describe the served model."""
    return describe_model(config)
