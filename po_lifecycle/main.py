"""
Main entry point for the purchase-order lifecycle service.

Builds one instance of each collaborator per process and wires them together.
Run the API with: python -m po_lifecycle.main
"""

from dataclasses import dataclass
from typing import Optional

from po_lifecycle.config import Config, get_config
from po_lifecycle.extraction import PDFExtractor
from po_lifecycle.metrics import MetricsAggregator, MetricsRecorder, TTLCache
from po_lifecycle.repository import PORepository
from po_lifecycle.service import POService
from po_lifecycle.status import StatusRegistry
from po_lifecycle.status.requirements import PredicateRegistry
from po_lifecycle.status.transitions import TransitionValidator
from po_lifecycle.utils.logging import setup_logging


logger = setup_logging(__name__)


@dataclass
class ServiceContainer:
    """Process-wide collaborators, created once at startup and passed down."""
    config: Config
    registry: StatusRegistry
    validator: TransitionValidator
    cache: TTLCache
    recorder: MetricsRecorder
    aggregator: MetricsAggregator
    repository: PORepository
    extractor: PDFExtractor
    service: POService

    def start(self) -> None:
        self.service.initialize()
        self.cache.start()

    def stop(self) -> None:
        self.cache.stop()


def build_container(config: Optional[Config] = None, database_path: Optional[str] = None) -> ServiceContainer:
    """Wire every collaborator from configuration."""
    config = config or get_config()

    registry = StatusRegistry()
    validator = TransitionValidator(registry, PredicateRegistry())
    cache = TTLCache(
        default_ttl=config.METRICS_CACHE_TTL,
        cleanup_interval=config.METRICS_CACHE_CLEANUP_INTERVAL,
    )
    recorder = MetricsRecorder(max_events=config.METRICS_MAX_EVENTS)
    aggregator = MetricsAggregator(cache=cache, recorder=recorder)
    repository = PORepository(
        path=database_path or config.PO_DATABASE_PATH,
        fuzzy_threshold=config.SEARCH_FUZZY_THRESHOLD,
    )
    extractor = PDFExtractor(
        recorder=recorder,
        max_attempts=config.EXTRACTION_MAX_ATTEMPTS,
        backoff_seconds=config.EXTRACTION_BACKOFF_SECONDS,
    )
    service = POService(repository, validator, aggregator, extractor)

    logger.info(f"Service container built (database={repository.path}, llm={config.LLM_PROVIDER})")
    return ServiceContainer(
        config=config,
        registry=registry,
        validator=validator,
        cache=cache,
        recorder=recorder,
        aggregator=aggregator,
        repository=repository,
        extractor=extractor,
        service=service,
    )


if __name__ == "__main__":
    import uvicorn

    config = get_config()
    uvicorn.run(
        "po_lifecycle.api:app",
        host=config.API_HOST,
        port=config.API_PORT,
        reload=config.API_DEBUG,
    )
