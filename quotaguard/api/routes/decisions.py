"""Decision endpoints.

Expose the enforcer over HTTP so services that can not embed the library
(other languages, edge proxies) can ask for admission decisions. The limit
is declared per request; callers sharing a ``key`` (or, without one, a
``name``) share a bucket.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from quotaguard.core.rate_limit import get_enforcer
from quotaguard.domain.context import RateLimitContext
from quotaguard.schemas.decision import DecisionRequest, DecisionResponse
from quotaguard.services.enforcer import RateLimitEnforcer

router = APIRouter(tags=["Decisions"])


def _build_context(body: DecisionRequest, request: Request) -> RateLimitContext:
    return RateLimitContext(
        config=body.to_config(),
        target=__name__,
        method=body.name.strip() or "decision",
        args=(request,),
    )


@router.post("/decisions", response_model=DecisionResponse)
def evaluate_decision(
    body: DecisionRequest,
    request: Request,
    enforcer: RateLimitEnforcer = Depends(get_enforcer),
) -> DecisionResponse:
    """Count one request against the declared limit and return the decision.

    Denials are reported in the body (``allowed: false``) with status 200.
    """

    decision = enforcer.evaluate(_build_context(body, request))
    return DecisionResponse.from_decision(decision)


@router.post("/decisions/enforce", response_model=DecisionResponse)
def enforce_decision(
    body: DecisionRequest,
    request: Request,
    enforcer: RateLimitEnforcer = Depends(get_enforcer),
) -> DecisionResponse:
    """Like ``/decisions`` but a denial becomes a 429 response.

    Raises:
        RateLimitExceededError: Translated to 429 by the exception handlers.
    """

    evaluation = enforcer.execute(_build_context(body, request))
    enforcer.raise_if_denied(evaluation)
    return DecisionResponse.from_decision(evaluation.decision)
