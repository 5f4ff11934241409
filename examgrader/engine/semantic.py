# examgrader/engine/semantic.py

from sentence_transformers import SentenceTransformer, util
from typing import Dict, List, Optional
import logging
import threading
import torch

logger = logging.getLogger(__name__)


class SentenceTransformerScorer:
    """
    Semantic similarity scorer for short answers.

    - Thread-safe lazy model loading, shared across instances
    - GPU / CPU auto-detection
    - Deterministic: a frozen embedding model and cosine similarity, so the
      same (answer, reference) pair always yields the same similarity
    """

    _models: Dict[str, SentenceTransformer] = {}
    _lock = threading.Lock()

    def __init__(
        self,
        model_name: str = "all-MiniLM-L6-v2",
        full_threshold: float = 0.85,
        partial_threshold: float = 0.6,
        batch_size: int = 32,
        device: Optional[str] = None
    ):
        """
        Args:
            model_name: SentenceTransformer model name
            full_threshold: Minimum similarity for full credit
            partial_threshold: Minimum similarity for partial credit
            batch_size: Batch size for embedding
            device: cpu / cuda / mps (auto-detected if None)
        """
        if not 0 <= partial_threshold <= full_threshold <= 1:
            raise ValueError("thresholds must satisfy 0 <= partial <= full <= 1")

        self.model_name = model_name
        self.full_threshold = full_threshold
        self.partial_threshold = partial_threshold
        self.batch_size = batch_size

        if device is None:
            device = (
                "cuda" if torch.cuda.is_available()
                else "mps" if torch.backends.mps.is_available()
                else "cpu"
            )
        self.device = device
        self._model: Optional[SentenceTransformer] = None

    @property
    def model(self) -> SentenceTransformer:
        if self._model is None:
            key = f"{self.model_name}@{self.device}"
            with SentenceTransformerScorer._lock:
                if key not in SentenceTransformerScorer._models:
                    logger.info(f"Loading sentence-transformers model {self.model_name} on {self.device}")
                    SentenceTransformerScorer._models[key] = SentenceTransformer(
                        self.model_name,
                        device=self.device
                    )
            self._model = SentenceTransformerScorer._models[key]
        return self._model

    # -------------------------------------------------
    # Embedding helpers
    # -------------------------------------------------

    def embed_texts(self, texts: List[str]) -> torch.Tensor:
        """Batch encode texts."""
        return self.model.encode(
            texts,
            convert_to_tensor=True,
            batch_size=self.batch_size,
            show_progress_bar=False
        )

    # -------------------------------------------------
    # Similarity
    # -------------------------------------------------

    def similarity(self, answer: str, reference: str) -> float:
        """Cosine similarity between answer and reference, clipped to [0, 1]."""
        if not answer or not reference:
            return 0.0

        embeddings = self.embed_texts([answer, reference])
        score = util.cos_sim(embeddings[0].unsqueeze(0), embeddings[1].unsqueeze(0))[0][0].item()
        return round(max(0.0, min(score, 1.0)), 3)


def create_semantic_scorer(settings) -> SentenceTransformerScorer:
    """Build the scorer from application settings."""
    return SentenceTransformerScorer(
        model_name=settings.SEMANTIC_MODEL_NAME,
        full_threshold=settings.SEMANTIC_FULL_THRESHOLD,
        partial_threshold=settings.SEMANTIC_PARTIAL_THRESHOLD,
        device=settings.SEMANTIC_DEVICE,
    )
