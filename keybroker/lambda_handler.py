"""AWS Lambda entry point for the key broker.

Mangum adapts API Gateway events to ASGI. Lifespan runs so the upstream
connection pool is closed when the execution environment shuts down;
use the dynamodb storage backend, since Lambda memory is per-instance.
"""

from mangum import Mangum

from keybroker.main import app

handler = Mangum(app, lifespan="auto")
