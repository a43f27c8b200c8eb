"""Tests for the embedding pipeline."""

import numpy as np
import pytest

from app.pipelines.embedding import EmbeddingPipeline
from app.pipelines.prefixes import DOCUMENT_PREFIX, RolePrefixes
from libs.common.errors import InvalidRequestError


@pytest.fixture
def pipeline(model_manager):
    return EmbeddingPipeline(model_manager, RolePrefixes(), configured_dimension=768)


@pytest.mark.asyncio
async def test_native_dimension_keeps_encoder_output(pipeline, encoder):
    vectors = await pipeline.embed(["hello world"], dimensions=768)

    assert len(vectors) == 1
    assert len(vectors[0]) == 768
    native = encoder.encode([DOCUMENT_PREFIX + "hello world"])[0]
    np.testing.assert_allclose(np.linalg.norm(vectors[0]), np.linalg.norm(native), atol=1e-6)
    np.testing.assert_allclose(vectors[0], native, atol=1e-7)


@pytest.mark.asyncio
async def test_reduced_dimension_is_unit_norm(pipeline):
    vectors = await pipeline.embed(["hello world"], dimensions=256)

    assert len(vectors) == 1
    assert len(vectors[0]) == 256
    assert np.linalg.norm(vectors[0]) == pytest.approx(1.0, abs=1e-5)


@pytest.mark.asyncio
async def test_default_dimension_is_native(pipeline):
    vectors = await pipeline.embed(["hello world"])

    assert len(vectors[0]) == 768


@pytest.mark.asyncio
async def test_encoder_only_sees_prefixed_text(pipeline, encoder):
    await pipeline.embed(["first", "second"])

    assert encoder.calls == [[DOCUMENT_PREFIX + "first", DOCUMENT_PREFIX + "second"]]


@pytest.mark.asyncio
async def test_embedding_is_idempotent(pipeline):
    first = await pipeline.embed(["the same text"], dimensions=128)
    second = await pipeline.embed(["the same text"], dimensions=128)

    np.testing.assert_allclose(first, second, atol=1e-7)


@pytest.mark.asyncio
async def test_batch_matches_individual_calls(pipeline):
    texts = ["red apples", "green pears", "blue berries"]

    batch = await pipeline.embed(texts, dimensions=512)
    individual = [(await pipeline.embed([text], dimensions=512))[0] for text in texts]

    np.testing.assert_allclose(batch, individual, atol=1e-6)


@pytest.mark.asyncio
async def test_output_order_follows_input(pipeline):
    texts = ["zeta", "alpha", "mu"]

    batch = await pipeline.embed(texts)
    single_alpha = (await pipeline.embed(["alpha"]))[0]

    np.testing.assert_allclose(batch[1], single_alpha, atol=1e-7)


@pytest.mark.asyncio
async def test_empty_input_is_rejected_without_inference(pipeline, encoder, model_manager):
    with pytest.raises(InvalidRequestError):
        await pipeline.embed([])

    assert encoder.calls == []
    assert model_manager.is_ready is False


@pytest.mark.asyncio
@pytest.mark.parametrize("dimensions", [0, 769])
async def test_invalid_dimensions_rejected_before_inference(pipeline, encoder, dimensions):
    with pytest.raises(InvalidRequestError):
        await pipeline.embed(["hello"], dimensions=dimensions)

    assert encoder.calls == []


@pytest.mark.asyncio
async def test_native_dimension_follows_loaded_encoder(model_manager):
    pipeline = EmbeddingPipeline(model_manager, RolePrefixes(), configured_dimension=1024)
    assert pipeline.native_dimension == 1024

    await model_manager.ensure_ready()

    assert pipeline.native_dimension == 768
