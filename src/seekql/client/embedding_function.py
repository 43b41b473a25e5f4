"""
Embedding function interface and the default ONNX implementation

Collections call ``embed_documents`` whenever a caller passes text instead of
precomputed vectors, and read ``dimension`` to size the vector column.
"""
import logging
import os
from functools import cached_property
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union, runtime_checkable

import httpx
import numpy as np
import numpy.typing as npt
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_random

from .errors import EmbeddingError

logger = logging.getLogger(__name__)

# Type aliases
Documents = Union[str, List[str]]
Embeddings = List[List[float]]
Embedding = List[float]

DEFAULT_HF_ENDPOINT = "https://huggingface.co"


@runtime_checkable
class EmbeddingFunction(Protocol):
    """
    Anything with a `dimension` and an `embed_documents` method

    Example:
        >>> class ConstantEmbedding:
        ...     dimension = 3
        ...     def embed_documents(self, documents: List[str]) -> Embeddings:
        ...         return [[0.1, 0.2, 0.3] for _ in documents]
    """

    @property
    def dimension(self) -> int:
        """Length of every vector produced"""
        ...

    def embed_documents(self, documents: List[str]) -> Embeddings:
        """
        Convert documents to embeddings, one vector per document, in order.
        """
        ...


def _is_retryable_download_error(exc: BaseException) -> bool:
    """Retry transport errors and 5xx/429 responses, never 404s"""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return isinstance(exc, httpx.TransportError)


class DefaultEmbeddingFunction:
    """
    all-MiniLM-L6-v2 sentence embeddings (384 floats) computed locally with onnxruntime

    Model files are downloaded from Hugging Face on first use and cached.

    Environment overrides:
        SEEKDB_ONNX_MODEL_DIR  - use an existing model directory, never download
        SEEKDB_ONNX_CACHE_DIR  - cache root (default ~/.cache/seekql/onnx_models)
        SEEKDB_ONNX_REPO_ID    - Hugging Face repository id
        SEEKDB_ONNX_REVISION   - repository revision (default 'main')
        HF_ENDPOINT            - Hugging Face endpoint or mirror

    Example:
        >>> ef = DefaultEmbeddingFunction()
        >>> embeddings = ef.embed_documents(["Hello world", "How are you?"])
        >>> len(embeddings[0])
        384
    """

    MODEL_NAME = "all-MiniLM-L6-v2"
    HF_MODEL_ID = "sentence-transformers/all-MiniLM-L6-v2"
    # remote path -> local file name
    MODEL_FILES = {
        "onnx/model.onnx": "model.onnx",
        "tokenizer.json": "tokenizer.json",
        "config.json": "config.json",
        "special_tokens_map.json": "special_tokens_map.json",
        "tokenizer_config.json": "tokenizer_config.json",
        "vocab.txt": "vocab.txt",
    }
    _DIMENSION = 384
    _MAX_TOKENS = 256

    def __init__(
        self,
        model_name: str = "all-MiniLM-L6-v2",
        preferred_providers: Optional[List[str]] = None,
        environ: Optional[Dict[str, str]] = None,
    ):
        """
        Args:
            model_name: Name of the model (only 'all-MiniLM-L6-v2' is supported)
            preferred_providers: onnxruntime execution providers to use, in order;
                                every available provider when None
            environ: Environment mapping to read overrides from (defaults to os.environ)
        """
        if model_name != self.MODEL_NAME:
            raise EmbeddingError(
                f"Currently only '{self.MODEL_NAME}' is supported, got '{model_name}'"
            )
        if preferred_providers and not all(isinstance(p, str) for p in preferred_providers):
            raise EmbeddingError("Preferred providers must be a list of strings")
        if preferred_providers and len(preferred_providers) != len(set(preferred_providers)):
            raise EmbeddingError("Preferred providers must be unique")

        self.model_name = model_name
        self._preferred_providers = list(preferred_providers) if preferred_providers else None

        env = os.environ if environ is None else environ
        self.repo_id = env.get("SEEKDB_ONNX_REPO_ID") or self.HF_MODEL_ID
        self.revision = env.get("SEEKDB_ONNX_REVISION") or "main"
        self.hf_endpoint = (env.get("HF_ENDPOINT") or DEFAULT_HF_ENDPOINT).rstrip("/")

        model_dir = env.get("SEEKDB_ONNX_MODEL_DIR")
        if model_dir:
            self.model_dir = Path(model_dir)
            self._download_allowed = False
        else:
            cache_root = Path(env.get("SEEKDB_ONNX_CACHE_DIR") or Path.home() / ".cache" / "seekql" / "onnx_models")
            self.model_dir = cache_root / self.MODEL_NAME / "onnx"
            self._download_allowed = True

    @property
    def dimension(self) -> int:
        """Always 384 for all-MiniLM-L6-v2"""
        return self._DIMENSION

    def max_tokens(self) -> int:
        return self._MAX_TOKENS

    # ==================== Model Files ====================

    def _file_url(self, remote_path: str) -> str:
        return f"{self.hf_endpoint}/{self.repo_id}/resolve/{self.revision}/{remote_path}"

    @retry(
        retry=retry_if_exception(_is_retryable_download_error),
        stop=stop_after_attempt(3),
        wait=wait_random(min=1, max=3),
        reraise=True,
    )
    def _download(self, url: str, fname: Path, chunk_size: int = 8192) -> None:
        """
        Stream `url` into `fname` through a `.part` file, with a tqdm progress bar.
        Partial files are removed when the transfer fails.
        """
        import tqdm

        logger.info(f"Fetching {url}")
        tmp_name = fname.with_suffix(fname.suffix + ".part")
        try:
            with httpx.Client(timeout=600.0, follow_redirects=True) as client:
                with client.stream("GET", url) as resp:
                    resp.raise_for_status()
                    total = int(resp.headers.get("content-length", 0))
                    with open(tmp_name, "wb") as file, tqdm.tqdm(
                        desc=fname.name,
                        total=total,
                        unit="iB",
                        unit_scale=True,
                        unit_divisor=1024,
                    ) as bar:
                        for data in resp.iter_bytes(chunk_size=chunk_size):
                            bar.update(file.write(data))
            os.replace(tmp_name, fname)
        finally:
            if tmp_name.exists():
                tmp_name.unlink()

    def _missing_files(self) -> List[str]:
        return [
            remote for remote, local in self.MODEL_FILES.items()
            if not (self.model_dir / local).exists()
        ]

    def _download_model_if_not_exists(self) -> None:
        missing = self._missing_files()
        if not missing:
            return
        if not self._download_allowed:
            raise EmbeddingError(
                f"Model directory {self.model_dir} is missing files: {missing}"
            )

        self.model_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Downloading model {self.repo_id} from Hugging Face (endpoint: {self.hf_endpoint})")
        for remote_path in missing:
            try:
                self._download(self._file_url(remote_path), self.model_dir / self.MODEL_FILES[remote_path])
            except httpx.HTTPError as e:
                raise EmbeddingError(
                    f"Failed to download {remote_path} for model {self.repo_id} "
                    f"(endpoint: {self.hf_endpoint}): {e}. "
                    f"Check the network connection or set HF_ENDPOINT to a mirror."
                ) from e
        logger.info(f"✅ Model downloaded to {self.model_dir}")

    @cached_property
    def tokenizer(self) -> Any:
        import tokenizers

        tokenizer = tokenizers.Tokenizer.from_file(str(self.model_dir / "tokenizer.json"))
        # sentence-transformers uses max_seq_length = 256 for this model
        tokenizer.enable_truncation(max_length=self._MAX_TOKENS)
        tokenizer.enable_padding(pad_id=0, pad_token="[PAD]", length=self._MAX_TOKENS)
        return tokenizer

    @cached_property
    def model(self) -> Any:
        import onnxruntime as ort

        available = ort.get_available_providers()
        if not self._preferred_providers:
            logger.debug(f"No ONNX providers given, using available providers: {available}")
            providers = list(available)
        elif not set(self._preferred_providers).issubset(set(available)):
            raise EmbeddingError(
                f"Preferred providers must be subset of available providers: {available}"
            )
        else:
            providers = list(self._preferred_providers)

        # CoreML is slower than CPU for this model
        if "CoreMLExecutionProvider" in providers:
            providers.remove("CoreMLExecutionProvider")

        so = ort.SessionOptions()
        so.log_severity_level = 3
        so.graph_optimization_level = ort.GraphOptimizationLevel.ORT_DISABLE_ALL
        so.execution_mode = ort.ExecutionMode.ORT_SEQUENTIAL
        so.inter_op_num_threads = 1
        so.intra_op_num_threads = 1

        return ort.InferenceSession(
            str(self.model_dir / "model.onnx"),
            providers=providers or ["CPUExecutionProvider"],
            sess_options=so,
        )

    # ==================== Inference ====================

    def _forward(self, documents: List[str], batch_size: int = 32) -> npt.NDArray[np.float32]:
        all_embeddings = []
        for i in range(0, len(documents), batch_size):
            encoded = [self.tokenizer.encode(d) for d in documents[i:i + batch_size]]

            input_ids = np.ascontiguousarray([e.ids for e in encoded], dtype=np.int64)
            attention_mask = np.ascontiguousarray([e.attention_mask for e in encoded], dtype=np.int64)
            token_type_ids = np.zeros_like(input_ids, dtype=np.int64)

            last_hidden_state = self.model.run(None, {
                "input_ids": input_ids,
                "attention_mask": attention_mask,
                "token_type_ids": token_type_ids,
            })[0]

            # Mean pooling over non-padding tokens
            mask = np.broadcast_to(
                np.expand_dims(attention_mask.astype(np.float32), -1), last_hidden_state.shape
            )
            pooled = np.sum(last_hidden_state * mask, 1) / np.clip(mask.sum(1), a_min=1e-9, a_max=None)
            all_embeddings.append(pooled.astype(np.float32))

        return np.concatenate(all_embeddings)

    def embed_documents(self, documents: List[str]) -> Embeddings:
        """
        One mean-pooled vector per document; the model is fetched on first use.

        Raises:
            EmbeddingError: if the model cannot be loaded or inference fails
        """
        if isinstance(documents, str):
            documents = [documents]
        if not documents:
            return []

        self._download_model_if_not_exists()
        try:
            embeddings = self._forward(list(documents))
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"ONNX inference failed: {e}") from e
        return [embedding.tolist() for embedding in embeddings]

    def __call__(self, input: Documents) -> Embeddings:
        """Alias of embed_documents that also accepts a single string"""
        return self.embed_documents(input)

    def __repr__(self) -> str:
        return f"DefaultEmbeddingFunction(model_name='{self.model_name}')"


# Shared by every collection that did not get an explicit embedding_function
_default_embedding_function: Optional[DefaultEmbeddingFunction] = None


def get_default_embedding_function() -> DefaultEmbeddingFunction:
    """
    The process-wide DefaultEmbeddingFunction, created on first call
    """
    global _default_embedding_function
    if _default_embedding_function is None:
        _default_embedding_function = DefaultEmbeddingFunction()
    return _default_embedding_function
