"""
FastAPI application for kube-badge.

Provides:
- Pod and node health badges (shields.io endpoint schema)
- Liveness endpoint
- Prometheus metrics
"""

from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse
import structlog

from . import __version__
from .badge import BadgeDocument, badge_label, format_badge
from .config import Settings
from .health import aggregate, node_is_healthy, pod_predicate
from .k8s_client import ClusterQueryError, K8sClient
from .metrics import cluster_queries_total, get_metrics_response, metrics_middleware
from .middleware import RecoveryMiddleware, RequestLoggingMiddleware

logger = structlog.get_logger(__name__)


# =============================================================================
# DEPENDENCIES
# =============================================================================


def get_cluster(request: Request) -> K8sClient:
    """Cluster handle created at startup."""
    return request.app.state.cluster


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


# =============================================================================
# LIFECYCLE
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management."""
    settings = app.state.settings
    logger.info(
        "Starting kube-badge",
        version=__version__,
        host=settings.host,
        port=settings.port,
        env=settings.env,
    )
    yield
    logger.info("Shutting down kube-badge")


# =============================================================================
# FASTAPI APP
# =============================================================================


def create_app(settings: Settings, cluster: K8sClient) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="kube-badge",
        description="Kubernetes pod and node health badges",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.cluster = cluster

    # Last added runs first: logging wraps metrics wraps recovery.
    app.add_middleware(RecoveryMiddleware)
    metrics_middleware(app)
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health_router)
    app.include_router(badge_router)
    app.include_router(metrics_router)

    return app


# =============================================================================
# HEALTH ROUTES
# =============================================================================

health_router = APIRouter(tags=["Health"])


@health_router.api_route("/healthz", methods=["GET", "HEAD"])
async def healthz():
    """Liveness probe. Does not touch the cluster."""
    return "ok"


# =============================================================================
# BADGE ROUTES
# =============================================================================

badge_router = APIRouter(tags=["Badges"])


@badge_router.get("/pods", response_model=BadgeDocument)
async def pods_badge(
    cluster: K8sClient = Depends(get_cluster),
    settings: Settings = Depends(get_settings),
):
    """Healthy/total pods across all namespaces."""
    try:
        pods = await cluster.list_pods()
    except ClusterQueryError as e:
        cluster_queries_total.labels(resource="pods", result="error").inc()
        logger.error("Pod query failed", error=str(e))
        return JSONResponse(status_code=500, content=str(e))
    cluster_queries_total.labels(resource="pods", result="success").inc()

    result = aggregate(pods, pod_predicate(settings.healthy_pod_phases))
    logger.debug("Pods aggregated", healthy=result.healthy, total=result.total)
    return format_badge(badge_label("pods", settings.env), result)


@badge_router.get("/nodes", response_model=BadgeDocument)
async def nodes_badge(
    cluster: K8sClient = Depends(get_cluster),
    settings: Settings = Depends(get_settings),
):
    """Healthy/total nodes, judged by each node's last condition."""
    try:
        nodes = await cluster.list_nodes()
    except ClusterQueryError as e:
        cluster_queries_total.labels(resource="nodes", result="error").inc()
        logger.error("Node query failed", error=str(e))
        return JSONResponse(status_code=500, content=str(e))
    cluster_queries_total.labels(resource="nodes", result="success").inc()

    result = aggregate(nodes, node_is_healthy)
    logger.debug("Nodes aggregated", healthy=result.healthy, total=result.total)
    return format_badge(badge_label("nodes", settings.env), result)


# =============================================================================
# METRICS ROUTE
# =============================================================================

metrics_router = APIRouter(tags=["Metrics"])


@metrics_router.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return get_metrics_response()
