"""
Input normalization and embedding resolution for add / update / upsert
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import EmbeddingError, InvalidInputError

logger = logging.getLogger(__name__)

IDs = Union[str, List[str]]
OneOrManyEmbeddings = Union[List[float], List[List[float]], np.ndarray]
OneOrManyMetadatas = Union[Dict[str, Any], List[Optional[Dict[str, Any]]]]
OneOrManyDocuments = Union[str, List[Optional[str]]]


@dataclass
class NormalizedInputs:
    ids: List[str]
    embeddings: Optional[List[List[float]]]
    metadatas: Optional[List[Optional[Dict[str, Any]]]]
    documents: Optional[List[Optional[str]]]


def normalize_embeddings(embeddings: Optional[OneOrManyEmbeddings]) -> Optional[List[List[float]]]:
    """
    Accept a single flat vector, a list of vectors or a numpy array and
    always return a list of vectors (None stays None)
    """
    if embeddings is None:
        return None
    if isinstance(embeddings, np.ndarray):
        embeddings = embeddings.tolist()
    if not isinstance(embeddings, (list, tuple)):
        raise InvalidInputError(f"embeddings must be a list, got {type(embeddings).__name__}")
    if len(embeddings) == 0:
        return []
    first = embeddings[0]
    if isinstance(first, np.ndarray):
        return [list(map(float, e)) for e in embeddings]
    if not isinstance(first, (list, tuple)):
        # Single flat vector
        return [list(embeddings)]
    return [list(e) for e in embeddings]


def normalize_inputs(
    ids: IDs,
    embeddings: Optional[OneOrManyEmbeddings] = None,
    metadatas: Optional[OneOrManyMetadatas] = None,
    documents: Optional[OneOrManyDocuments] = None,
) -> NormalizedInputs:
    """Normalize single values to lists; ids are converted to strings"""
    if ids is None:
        raise InvalidInputError("ids must be provided")
    if isinstance(ids, str):
        ids = [ids]
    ids = [id_val if isinstance(id_val, str) else str(id_val) for id_val in ids]

    if isinstance(documents, str):
        documents = [documents]
    elif documents is not None:
        documents = list(documents)

    if isinstance(metadatas, dict):
        metadatas = [metadatas]
    elif metadatas is not None:
        metadatas = list(metadatas)

    return NormalizedInputs(
        ids=ids,
        embeddings=normalize_embeddings(embeddings),
        metadatas=metadatas,
        documents=documents,
    )


def validate_lengths(inputs: NormalizedInputs) -> None:
    """
    Check that ids is non-empty and that every non-empty parallel list
    has the same length as ids
    """
    if not inputs.ids:
        raise InvalidInputError("ids must not be empty")
    num_ids = len(inputs.ids)
    if inputs.documents and len(inputs.documents) != num_ids:
        raise InvalidInputError(
            f"Number of documents ({len(inputs.documents)}) does not match number of ids ({num_ids})"
        )
    if inputs.metadatas and len(inputs.metadatas) != num_ids:
        raise InvalidInputError(
            f"Number of metadatas ({len(inputs.metadatas)}) does not match number of ids ({num_ids})"
        )
    for meta in inputs.metadatas or []:
        if meta is not None and not isinstance(meta, dict):
            raise InvalidInputError(f"Each metadata must be a dict or None, got {type(meta).__name__}")


def validate_embeddings(embeddings: Sequence[Sequence[float]], expected_count: int, dimension: int) -> None:
    """Count must match ids and every vector must have the collection dimension"""
    if len(embeddings) != expected_count:
        raise InvalidInputError(
            f"Number of embeddings ({len(embeddings)}) does not match number of ids ({expected_count})"
        )
    for vector in embeddings:
        validate_dimension(vector, dimension)


def validate_dimension(vector: Sequence[float], dimension: int) -> None:
    if len(vector) != dimension:
        raise InvalidInputError(
            f"Embedding dimension {len(vector)} does not match collection dimension {dimension}"
        )


def embed_documents(embedding_function: Any, documents: List[str]) -> List[List[float]]:
    """Run the embedding function, wrapping any failure in EmbeddingError"""
    logger.info(f"Generating embeddings for {len(documents)} documents using embedding function")
    try:
        generated = embedding_function.embed_documents(documents)
    except EmbeddingError:
        raise
    except Exception as e:
        logger.error(f"Failed to generate embeddings: {e}")
        raise EmbeddingError(f"Failed to generate embeddings from documents: {e}") from e
    generated = normalize_embeddings(generated) or []
    logger.info(f"✅ Successfully generated {len(generated)} embeddings")
    return generated


def resolve_embeddings(
    ids: Sequence[str],
    embeddings: Optional[List[List[float]]],
    documents: Optional[List[Optional[str]]],
    embedding_function: Any,
    dimension: int,
    require_embeddings: bool = True,
    allow_missing_function: bool = False,
) -> Optional[List[List[float]]]:
    """
    Decide which vectors get written.

    Precedence: explicit embeddings > vectors generated from documents by the
    embedding function > nothing.

    Args:
        require_embeddings: when no source is available raise InvalidInputError
            instead of returning None (add)
        allow_missing_function: documents without an embedding function are
            accepted and yield None instead of an error (upsert keeps the stored
            vector in that case)

    Raises:
        InvalidInputError: count/dimension mismatch or no usable embedding source
        EmbeddingError: the embedding function failed
    """
    if embeddings:
        validate_embeddings(embeddings, len(ids), dimension)
        return embeddings

    if documents:
        if embedding_function is None:
            if allow_missing_function:
                return None
            raise InvalidInputError(
                "Documents provided but no embeddings and no embedding function: no usable embedding source. "
                "Either provide embeddings directly, or set an embedding_function on the collection."
            )
        if any(doc is None for doc in documents):
            raise InvalidInputError("Cannot generate embeddings for documents that are None")
        generated = embed_documents(embedding_function, list(documents))
        validate_embeddings(generated, len(ids), dimension)
        return generated

    if require_embeddings:
        raise InvalidInputError(
            "Neither embeddings nor documents provided: no usable embedding source. "
            "Provide embeddings directly, or documents with an embedding_function."
        )
    return None


def merge_values(
    existing: Tuple[Optional[str], Optional[Dict[str, Any]], Optional[List[float]]],
    new: Tuple[Optional[str], Optional[Dict[str, Any]], Optional[List[float]]],
) -> Tuple[Optional[str], Optional[Dict[str, Any]], Optional[List[float]]]:
    """Field-wise precedence for upsert: new value > existing value > None"""
    return tuple(
        new_value if new_value is not None else existing_value
        for existing_value, new_value in zip(existing, new)
    )
