"""Engine wiring: builds every component from Settings.

Settings are read here and nowhere else in the core; components receive
values and collaborators through their constructors.
"""

from dataclasses import dataclass
from functools import lru_cache

from app.core.config import Settings, get_settings
from app.core.embeddings import OpenAIEmbeddingProvider
from app.core.feedback import FeedbackService
from app.core.logging import get_logger
from app.core.orchestrator import Orchestrator
from app.core.pattern_library import PatternLibrary
from app.core.prediction_engine import PredictionEngine
from app.core.qdrant_index import create_client
from app.core.schemas_pipeline import PipelineConfig
from app.core.seed_patterns import hse_patterns
from app.core.signal_processor import SignalProcessor
from app.core.tenant_embeddings import TenantEmbeddingService
from app.core.validation import ValidationService
from app.core.vector_store import QdrantVectorStore

logger = get_logger(__name__)


@dataclass
class Engine:
    """All long-lived components of one engine instance."""

    library: PatternLibrary
    signal_processor: SignalProcessor
    prediction_engine: PredictionEngine
    validation_service: ValidationService
    orchestrator: Orchestrator
    feedback_service: FeedbackService
    vector_store: QdrantVectorStore | None = None
    tenant_provider: TenantEmbeddingService | None = None


def build_engine(settings: Settings | None = None) -> Engine:
    """
    Construct an engine from settings.

    Vector search is wired only when both VECTOR_URL and OPENAI_API_KEY are
    set; otherwise the engine runs on rule-based matching alone.
    """
    settings = settings or get_settings()

    library = PatternLibrary(
        match_threshold=settings.PATTERN_MATCH_THRESHOLD,
        default_decay_rate=settings.DEFAULT_DECAY_RATE,
    )
    if settings.LOAD_SEED_PATTERNS:
        library.load_patterns(hse_patterns())

    vector_store = None
    tenant_provider = None
    if settings.vector_search_configured:
        embedder = OpenAIEmbeddingProvider(
            api_key=settings.OPENAI_API_KEY,
            model=settings.EMBEDDING_MODEL,
            dimensions=settings.EMBEDDING_DIM,
        )
        client = create_client(
            settings.VECTOR_URL,
            api_key=settings.VECTOR_API_KEY,
            timeout=settings.VECTOR_TIMEOUT_SECONDS,
        )
        tenant_provider = TenantEmbeddingService(client, embedder, collection=settings.TENANT_COLLECTION)
        vector_store = QdrantVectorStore(
            client,
            embedder,
            library,
            collection=settings.PATTERN_COLLECTION,
            tenant_provider=tenant_provider,
            fusion_alpha=settings.FUSION_ALPHA,
            rerank_weight=settings.AFFINITY_RERANK_WEIGHT,
        )
    else:
        logger.info("Vector search not configured, using rule-based matching only")

    signal_processor = SignalProcessor()
    prediction_engine = PredictionEngine(
        library,
        vector_store=vector_store,
        vector_min_score=settings.VECTOR_MIN_SCORE,
    )
    validation_service = ValidationService()
    orchestrator = Orchestrator(
        signal_processor,
        library,
        prediction_engine,
        validation_service,
        vector_store=vector_store,
        tenant_provider=tenant_provider,
        default_config=PipelineConfig(max_auto_fix_attempts=settings.MAX_AUTO_FIX_ATTEMPTS),
        affinity_delta=settings.AFFINITY_DELTA,
    )

    logger.info(
        "Engine built",
        extra={"patterns": library.pattern_count(), "vector_search": vector_store is not None},
    )
    return Engine(
        library=library,
        signal_processor=signal_processor,
        prediction_engine=prediction_engine,
        validation_service=validation_service,
        orchestrator=orchestrator,
        feedback_service=FeedbackService(),
        vector_store=vector_store,
        tenant_provider=tenant_provider,
    )


async def start_engine(engine: Engine) -> None:
    """Prepare the vector index (collection + pattern vectors) when one is wired."""
    if engine.vector_store is None:
        return
    if await engine.vector_store.initialize():
        await engine.vector_store.seed_patterns(engine.library.get_all_patterns())


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Get the cached engine instance used by the API."""
    return build_engine(get_settings())
