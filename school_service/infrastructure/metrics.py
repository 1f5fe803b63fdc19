from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from fastapi import Response

# HTTP
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

# Кэш справочников
cache_hits_total = Counter('cache_hits_total', 'Total cache hits')
cache_misses_total = Counter('cache_misses_total', 'Total cache misses')

# БД
db_queries_total = Counter('db_queries_total', 'Total database queries')

# Доступ
auth_failures_total = Counter('auth_failures_total', 'Rejected session credentials', ['reason'])
permission_denied_total = Counter(
    'permission_denied_total',
    'Requests rejected by the permission gate',
    ['role', 'resource', 'action']
)


def metrics_endpoint():
    """Endpoint для Prometheus метрик"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
