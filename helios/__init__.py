"""
Helios testnet protocol layer.

Submodules:
    api: ``HeliosApi`` typed REST calls and response models.
    auth: ``AuthBootstrap`` login with registration fallback.
    onboarding: Step catalog and ``OnboardingStateMachine``.
    account: ``AccountRunner`` per-wallet pipeline and ``AccountOutcome``.
"""
