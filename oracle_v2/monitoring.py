# oracle_v2/monitoring.py
import errno
import time
import psutil
import socket
import threading
import logging
from socketserver import ThreadingMixIn
from wsgiref.simple_server import make_server, WSGIServer
from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry
from prometheus_client.exposition import make_wsgi_app

logger = logging.getLogger(__name__)

BIND_ATTEMPTS = 5
BIND_RETRY_DELAY = 2


class MetricsHTTPServer(ThreadingMixIn, WSGIServer):
    """Serves /metrics off the verifier's thread."""
    allow_reuse_address = True
    daemon_threads = True


class Monitor:
    def __init__(self, host="127.0.0.1", port=9090):
        self.host = host
        self.port = port
        self.server = None
        self.thread = None

        # Isolated registry so several verifiers can live in one process
        self.registry = CollectorRegistry()

        self.batches = Counter('oracle_batches_total', 'Proof batches processed', ['status'], registry=self.registry)
        self.rejections = Counter('oracle_batch_rejections_total', 'Rejected batches by error', ['reason'], registry=self.registry)
        self.prices_updated = Counter('oracle_prices_updated_total', 'Price slots updated', registry=self.registry)
        self.stale_updates = Counter('oracle_stale_updates_total', 'Entries ignored by the round rule', registry=self.registry)
        self.signature_checks = Counter('oracle_signature_checks_total', 'Committee signature checks', ['result'], registry=self.registry)
        self.hcc_inconsistent = Counter('oracle_hcc_inconsistent_total', 'Transitions into the inconsistent state', registry=self.registry)
        self.ingest_latency = Histogram('oracle_ingest_latency_seconds', 'Time to verify and ingest a batch', registry=self.registry)
        self.tracked_pairs = Gauge('oracle_hcc_tracked_pairs', 'Pairs opted into the consistency check', registry=self.registry)
        self.replay_roots = Gauge('oracle_replay_guard_roots', 'Roots held by the replay guard', registry=self.registry)
        self.process_cpu = Gauge('oracle_host_cpu_percent', 'Host CPU usage percent', registry=self.registry)
        self.process_memory = Gauge('oracle_host_memory_percent', 'Host memory usage percent', registry=self.registry)

    def _bind(self, app):
        server = make_server(self.host, self.port, app, MetricsHTTPServer)
        server.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return server

    def start_server(self):
        """Starts the Prometheus endpoint on a daemon thread, waiting out a busy port."""
        app = make_wsgi_app(self.registry)
        for attempt in range(1, BIND_ATTEMPTS + 1):
            try:
                self.server = self._bind(app)
                break
            except OSError as e:
                if e.errno != errno.EADDRINUSE or attempt == BIND_ATTEMPTS:
                    logger.error(f"Metrics endpoint could not bind {self.host}:{self.port}: {e}")
                    raise
                logger.warning(f"Port {self.port} busy, attempt {attempt}/{BIND_ATTEMPTS}; retrying in {BIND_RETRY_DELAY}s")
                time.sleep(BIND_RETRY_DELAY)

        self.thread = threading.Thread(target=self.server.serve_forever, name="oracle-metrics", daemon=True)
        self.thread.start()
        logger.info(f"Metrics endpoint listening on http://{self.host}:{self.port}/metrics")

    def stop_server(self):
        if self.server is None:
            return
        self.server.shutdown()
        self.server.server_close()
        self.server = None
        logger.info("Metrics endpoint stopped")

    def record_batch(self, status: str, latency: float, reason: str = None):
        self.batches.labels(status=status).inc()
        self.ingest_latency.observe(latency)
        if reason:
            self.rejections.labels(reason=reason).inc()

    def record_signature(self, result: str, count: int = 1):
        self.signature_checks.labels(result=result).inc(count)

    def update(self, tracked_pairs: int, replay_roots: int):
        self.tracked_pairs.set(tracked_pairs)
        self.replay_roots.set(replay_roots)
        self.process_cpu.set(psutil.cpu_percent())
        self.process_memory.set(psutil.virtual_memory().percent)
