"""
Pregenerated Wallet Mint Server - Event-driven FastAPI wrapper.

``MintServer`` wires the resilience controls (rate limiter, response cache,
circuit breaker) around a ``MintOrchestrator`` and exposes ``POST /mint``
and ``GET /health``.
"""

import asyncio
import time
import traceback
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import structlog
from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from ..adapters.bases import ShareStore, UserOperationRelay, CustodialWalletService
from ..adapters.custody.local import LocalCustodialService
from ..adapters.evm.relay import AlchemyAccountRelay
from ..adapters.evm.submitter import TransactionSubmitter
from ..adapters.stores.memory import InMemoryShareStore
from ..adapters.stores.supabase import SupabaseShareStore
from ..config import Settings
from ..engine.breaker import CircuitBreaker
from ..engine.cache import ResponseCache
from ..engine.events import (
    BaseEvent,
    CircuitOpenEvent,
    Dependencies,
    EventBus,
    MintCompletedEvent,
    MintFailedEvent,
    MintRequestEvent,
    ValidationFailedEvent,
)
from ..engine.exceptions import ErrorKind, RateLimitExceeded
from ..engine.executors import EventChain
from ..engine.orchestrator import MintOrchestrator
from ..engine.provisioning import WalletProvisioner
from ..engine.retry import RetryExecutor
from ..schemas.https import ErrorResponse, MintRequest
from .flows import setup_event_bus
from .limits import FixedWindowRateLimiter, RateLimitStatus, rate_limit_dependency, rate_limit_exceeded_handler

log = structlog.get_logger(__name__)

#: Seconds advertised after wallet and pre-flight failures.
SERVICE_RETRY_AFTER = 60

FAILURE_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CIRCUIT_OPEN: 503,
    ErrorKind.SERVICE_INIT: 503,
    ErrorKind.WALLET_OPERATION: 500,
    ErrorKind.INTERNAL: 500,
}

SECURITY_HEADERS: Dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-DNS-Prefetch-Control": "off",
    "X-XSS-Protection": "0",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
}


def build_orchestrator(
    settings: Settings,
    *,
    custody: Optional[CustodialWalletService] = None,
    share_store: Optional[ShareStore] = None,
    relay: Optional[UserOperationRelay] = None,
    sleep: Optional[Callable[[float], Any]] = None,
) -> MintOrchestrator:
    """
    Compose a ``MintOrchestrator`` from settings.

    Collaborators not passed in are built from configuration: the Supabase
    share store when its URL and key are set (the in-memory store otherwise),
    the local custodial service (registered against that store) and the
    Alchemy relay.

    Raises:
        ConfigurationError: If a collaborator to be built is not configured.
    """
    retry = RetryExecutor(settings.max_retries, settings.initial_retry_delay, sleep=sleep)

    if share_store is None:
        if settings.supabase_url and settings.supabase_anon_key:
            share_store = SupabaseShareStore(settings.supabase_url, settings.supabase_anon_key)
        else:
            log.warning("share_store_in_memory", reason="SUPABASE_URL or SUPABASE_ANON_KEY not set")
            share_store = InMemoryShareStore()

    return MintOrchestrator(
        custody=custody or LocalCustodialService(settings.custody_secret, registry=share_store),
        provisioner=WalletProvisioner(share_store, retry=retry, serialize=settings.provisioning_lock),
        relay=relay or AlchemyAccountRelay(settings.alchemy_rpc_url, policy_id=settings.alchemy_gas_policy_id),
        submitter=TransactionSubmitter(settings.nft_contract_address, retry=retry),
        retry=retry,
        call_retry=retry,
    )


class MintServer(FastAPI):
    """FastAPI server minting NFTs to identifier-addressed wallets."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        orchestrator: Optional[MintOrchestrator] = None,
        cache: Optional[ResponseCache] = None,
        breaker: Optional[CircuitBreaker] = None,
        rate_limiter: Optional[FixedWindowRateLimiter] = None,
        **fastapi_kwargs,
    ):
        """Initialize the mint server.

        Args:
            settings: Runtime configuration (default: ``Settings.from_env()``)
            orchestrator: Mint workflow (default: built from settings)
            cache: Result cache (default: TTL from settings)
            breaker: Circuit breaker (default: threshold/reset from settings)
            rate_limiter: Limiter for ``/mint`` (default: window/max from settings)
            **fastapi_kwargs: FastAPI arguments (title, version, etc.)
        """
        self.settings = settings or Settings.from_env()
        self.orchestrator = orchestrator or build_orchestrator(self.settings)
        self.cache = cache or ResponseCache(ttl=self.settings.cache_ttl)
        self.breaker = breaker or CircuitBreaker(
            threshold=self.settings.circuit_breaker_threshold,
            reset_timeout_ms=self.settings.circuit_breaker_reset_time,
        )
        self.rate_limiter = rate_limiter or FixedWindowRateLimiter(
            window_ms=self.settings.rate_limit_window,
            max_requests=self.settings.rate_limit_max,
        )
        self.depends = Dependencies(
            settings=self.settings,
            cache=self.cache,
            breaker=self.breaker,
            orchestrator=self.orchestrator,
        )
        self.event_bus: EventBus = setup_event_bus()

        fastapi_kwargs.setdefault("lifespan", self._build_lifespan())
        super().__init__(**fastapi_kwargs)

        self._setup_middleware()
        self._setup_exception_handlers()
        self._setup_mint_endpoint()
        self._setup_health_endpoint()

    def subscribe(self, event_class: type[BaseEvent], handler: Callable) -> None:
        """Register an extra event handler.

        Example:
            ```python
            async def audit(event: MintCompletedEvent, deps: Dependencies):
                return None

            app.subscribe(MintCompletedEvent, audit)
            ```
        """
        self.event_bus.subscribe(event_class, handler)

    def add_hook(self, event_class: type[BaseEvent], hook: Callable) -> None:
        """Register an event hook for side effects."""
        self.event_bus.hook(event_class, hook)

    def hook(self, event_class: type[BaseEvent]) -> Callable:
        """Decorator for registering event hooks.

        Example:
            @app.hook(MintFailedEvent)
            async def on_mint_failed(event, deps):
                await notify_oncall(event)
        """
        def decorator(hook_func: Callable) -> Callable:
            self.event_bus.hook(event_class, hook_func)
            return hook_func
        return decorator

    def _build_lifespan(self):
        @asynccontextmanager
        async def lifespan(app: FastAPI) -> AsyncIterator[None]:
            tasks: List[asyncio.Task] = [
                asyncio.create_task(self.cache.run_sweeper()),
                asyncio.create_task(self._prune_rate_limits()),
            ]
            log.info("mint_server_started", environment=self.settings.environment)
            try:
                yield
            finally:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                await self._close_clients()
                log.info("mint_server_stopped")
        return lifespan

    async def _prune_rate_limits(self) -> None:
        while True:
            await asyncio.sleep(self.rate_limiter.window_ms / 1000)
            self.rate_limiter.prune()

    async def _close_clients(self) -> None:
        store = self.orchestrator.provisioner.share_store
        for client in (self.orchestrator.relay, store):
            aclose = getattr(client, "aclose", None)
            if aclose is None:
                continue
            try:
                await aclose()
            except Exception as e:
                log.warning("client_close_failed", client=type(client).__name__, error=str(e))

    def _setup_middleware(self) -> None:
        self.add_middleware(GZipMiddleware, minimum_size=1000)
        self.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization"],
        )

        @self.middleware("http")
        async def security_headers(request: Request, call_next):
            response = await call_next(request)
            for name, value in SECURITY_HEADERS.items():
                response.headers.setdefault(name, value)
            return response

    def _setup_exception_handlers(self) -> None:
        self.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

        @self.exception_handler(RequestValidationError)
        async def invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
            log.info("invalid_request_body", path=request.url.path, errors=len(exc.errors()))
            body = ErrorResponse(error="Invalid request body")
            if self.settings.is_development:
                body.details = "; ".join(str(err.get("msg")) for err in exc.errors())
            return JSONResponse(status_code=400, content=body.to_dict())

        @self.exception_handler(Exception)
        async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
            log.error(
                "unhandled_exception",
                path=request.url.path,
                method=request.method,
                error=str(exc),
                exc_info=True,
            )
            body = ErrorResponse(error="Internal server error")
            if self.settings.is_development:
                body.message = str(exc)
                body.stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            return JSONResponse(status_code=500, content=body.to_dict())

    def _failure_response(self, event: MintFailedEvent) -> JSONResponse:
        """Map a failed mint to its status and body through ``FAILURE_STATUS``."""
        dev = self.settings.is_development
        reset_after = self.settings.retry_after_seconds

        if event.kind is ErrorKind.SERVICE_INIT and event.preflight:
            body = ErrorResponse(
                error="Service initialization failed",
                retry_after=SERVICE_RETRY_AFTER,
                details="Failed to initialize necessary services",
            )
        elif event.kind is ErrorKind.SERVICE_INIT:
            body = ErrorResponse(
                error="Service temporarily unavailable",
                retry_after=reset_after,
                details="Failed to initialize custodial wallet service",
            )
        elif event.kind is ErrorKind.WALLET_OPERATION:
            body = ErrorResponse(
                error="Wallet operation failed",
                retry_after=SERVICE_RETRY_AFTER,
                details=event.error_message if dev else "Wallet operation error",
            )
        else:
            body = ErrorResponse(
                error="Failed to mint NFT",
                retry_after=reset_after,
                details=event.error_message if dev else "Internal server error",
            )
        return JSONResponse(status_code=FAILURE_STATUS[event.kind], content=body.to_dict())

    def _to_response(self, event: Optional[BaseEvent]) -> JSONResponse:
        if isinstance(event, MintCompletedEvent):
            return JSONResponse(status_code=200, content=event.result.to_dict())

        if isinstance(event, ValidationFailedEvent):
            return JSONResponse(
                status_code=FAILURE_STATUS[ErrorKind.VALIDATION],
                content=ErrorResponse(error=event.error_message).to_dict(),
            )

        if isinstance(event, CircuitOpenEvent):
            return JSONResponse(
                status_code=FAILURE_STATUS[ErrorKind.CIRCUIT_OPEN],
                content=ErrorResponse(error="Service temporarily unavailable", retry_after=event.retry_after).to_dict(),
            )

        if isinstance(event, MintFailedEvent):
            return self._failure_response(event)

        log.error("mint_chain_incomplete", last_event=repr(event))
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="Failed to mint NFT", retry_after=self.settings.retry_after_seconds).to_dict(),
        )

    def _setup_mint_endpoint(self, path: str = "/mint") -> None:
        limiter = rate_limit_dependency(self.rate_limiter, trust_proxy=self.settings.trust_proxy)

        @self.post(path)
        async def mint(
            body: Optional[MintRequest] = Body(default=None),
            limit: RateLimitStatus = Depends(limiter),
        ) -> JSONResponse:
            """Mint an NFT to the wallet of an email or phone identifier."""
            started = time.perf_counter()
            request = body or MintRequest()

            event_chain = EventChain(self.event_bus, self.depends)
            final_event = await event_chain.run_until_terminal(
                MintRequestEvent(email=request.email, phone=request.phone)
            )

            response = self._to_response(final_event)
            response.headers.update(limit.headers())
            log.info(
                "mint_request_completed",
                status=response.status_code,
                outcome=type(final_event).__name__ if final_event is not None else None,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            return response

    def _setup_health_endpoint(self, path: str = "/health") -> None:
        @self.get(path)
        async def health() -> JSONResponse:
            """Report reachability of the custodial service, signer and relay."""
            try:
                report = await self.orchestrator.check_health()
            except Exception as e:
                log.error("health_check_failed", error_name=type(e).__name__, error=str(e))
                return JSONResponse(status_code=500, content={"status": "unhealthy", "error": str(e)})
            return JSONResponse(status_code=200, content=report.to_dict())
