"""Command-line entry point: scan the mailbox once and sync jobs to Notion."""

from __future__ import annotations

import uuid
from typing import Optional

import structlog

from job_tracker.config import AppConfig, get_config
from job_tracker.email.client import IMAPClient
from job_tracker.extraction.llm import LLMProvider, create_llm_provider
from job_tracker.extraction.pipeline import PipelineSummary, run_pipeline
from job_tracker.extraction.prompt import PromptTemplate
from job_tracker.extraction.structurer import Structurer
from job_tracker.logging_config import bind_run_context, setup_logging
from job_tracker.notion import JobUpserter, NotionClient

logger = structlog.get_logger(__name__)


def run(config: AppConfig) -> PipelineSummary:
    """Initialise collaborators in order, then run the pipeline to completion.

    Template and provider come first so a missing template or credential is
    fatal before any mailbox work starts.
    """
    template = PromptTemplate.load(config.prompt_path)

    provider: Optional[LLMProvider] = None
    if config.llm_enabled:
        provider = create_llm_provider(config)
    else:
        logger.info("llm_disabled")

    upserter = JobUpserter(NotionClient(config))
    structurer = Structurer(provider, template)

    with IMAPClient(config) as imap:
        uids = imap.search_recent(config.lookback_days)
        if not uids:
            logger.info("no_messages", lookback_days=config.lookback_days)
            return PipelineSummary()
        return run_pipeline(imap.iter_messages(uids), structurer, upserter)


def main() -> int:
    try:
        config = get_config()
    except Exception as exc:
        setup_logging()
        logger.error("fatal_error", stage="config", error=str(exc))
        return 1

    setup_logging(level=config.log_level, log_file=config.log_file)
    bind_run_context(run_id=uuid.uuid4().hex[:8])
    logger.info(
        "tracker_starting",
        folder=config.email_folder,
        lookback_days=config.lookback_days,
        llm_provider=config.llm_provider if config.llm_enabled else "disabled",
    )
    try:
        run(config)
    except KeyboardInterrupt:
        logger.warning("interrupted")
        return 130
    except Exception as exc:
        logger.error("fatal_error", error=str(exc), exc_type=type(exc).__name__)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
