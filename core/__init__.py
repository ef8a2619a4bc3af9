"""
Core module for the Helios onboarding bot.

This package contains the transport, resilience, configuration and
orchestration components the Helios protocol layer is built on.

Submodules:
    config: Application settings (``BotSettings``) via Pydantic.
    logging_setup: Compressed rotating file + safe console logging with secret redaction.
    utils: List-file reading and address formatting helpers.
    proxy_manager: ``ProxyRotator`` round-robin proxy pool.
    retry: ``RetryPolicy`` classified retry with backoff and proxy rotation.
    http_client: ``ResilientHttpClient`` REST transport and ``ApiError``.
    wallet_manager: ``ChainGateway`` key derivation, signing and JSON-RPC balance reads.
    orchestrator: ``BatchOrchestrator`` sequential multi-account runner.
    monitoring: ``RunReporter`` Rich console summaries.
"""
